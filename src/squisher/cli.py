#!/usr/bin/env python3
"""
CLI entrypoint: compress the textures of a GLB into KTX2.

Usage:
    squisher input.glb output.glb --format astc
    squisher input.glb output.glb --format raw --no-cache --verbose
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config_utils import load_settings
from .errors import SquishError
from .pipeline import squish_file
from .roles import TextureFormat


def setup_logging(logfile: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """
    Configure logging to console and optional file.

    Args:
        logfile: Optional path to save logs.
        verbose: Emit debug-level logs (True) or info-level (False).

    Returns:
        Configured logger instance.
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "[%(asctime)s] [%(levelname)s] %(message)s"

    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)
    return logging.getLogger("squisher")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Re-encode the textures of a GLB file as GPU-ready KTX2 images."
    )
    parser.add_argument("input", type=Path,
                        help="The path to the file to process")
    parser.add_argument("output", type=Path,
                        help="Where to write the squished output")
    parser.add_argument("--format", required=True, type=TextureFormat.parse,
                        help="Texture format to use: 'raw' (RGBA8) or 'astc'")
    parser.add_argument("--no-cache", action="store_true",
                        help="Disable the image cache, forcing all images to be reprocessed")
    parser.add_argument("--no-supercompression", action="store_true",
                        help="Do not apply zstd supercompression to the KTX2 payload")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML config file (default: config/squisher.yml if present)")
    parser.add_argument("--log", type=Path, default=None,
                        help="Optional log file to save logs")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enables more verbose logging")
    return parser


def main(args: argparse.Namespace) -> int:
    logger = setup_logging(args.log, verbose=args.verbose)
    try:
        settings = load_settings(args.config)
        settings.use_cache = not args.no_cache
        settings.supercompression = not args.no_supercompression
        squish_file(args.input, args.output, args.format, settings=settings)
    except (SquishError, OSError, ValueError) as err:
        logger.error("Fatal error: %s", err)
        return 1
    return 0


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return main(args)


if __name__ == "__main__":
    sys.exit(run())
