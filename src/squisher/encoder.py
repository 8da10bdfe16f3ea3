"""
Invoke the KTX-Software `toktx` tool to turn a PNG/JPEG into a KTX2 texture.

Options are a pure function of EncodeOptions:
  --t2 --genmipmap                          always
  --target_type RGBA                        raw RGBA8 target
  --encode astc --astc_blk_d B --astc_quality Q   ASTC target
  --normal_mode --normalize                 normal maps
  --assign_oetf srgb|linear                 by role
  --zcmp LEVEL                              when supercompression is on
"""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List

from .errors import EncoderError
from .images import PreparedImage
from .roles import EncodeOptions, TextureFormat

logger = logging.getLogger(__name__)

BIN_TOKTX = "toktx"


def toktx_args(options: EncodeOptions) -> List[str]:
    """Encoder flags for one image (no paths)."""
    args = [
        "--t2",         # KTX2 container
        "--genmipmap",
    ]
    if options.target_format is TextureFormat.RGBA8:
        args += ["--target_type", "RGBA"]
    else:
        args += [
            "--encode", "astc",
            "--astc_blk_d", options.block_size,
            "--astc_quality", options.astc_quality,
        ]

    if options.normalize:
        args += ["--normal_mode", "--normalize"]

    args += ["--assign_oetf", options.transfer_function]

    if options.supercompression:
        args += ["--zcmp", str(options.zstd_level)]
    return args


class ToktxEncoder:
    """Runs toktx on a temporary copy of the image and returns the KTX2 bytes."""

    def __init__(self, executable: str = BIN_TOKTX):
        self.executable = executable
        self.invocations = 0

    def command(self, options: EncodeOptions, output_path: Path, input_path: Path) -> List[str]:
        return [self.executable, *toktx_args(options), str(output_path), str(input_path)]

    def encode(self, image: PreparedImage, options: EncodeOptions) -> bytes:
        with tempfile.TemporaryDirectory(prefix="squisher_") as tmp:
            input_path = Path(tmp) / f"source{image.suffix}"
            output_path = Path(tmp) / "output.ktx2"
            input_path.write_bytes(image.data)

            cmd = self.command(options, output_path, input_path)
            logger.debug("[cmd] %s", " ".join(cmd))
            self.invocations += 1
            try:
                result = subprocess.run(cmd, capture_output=True)
            except FileNotFoundError as exc:
                raise EncoderError(
                    f"Encoder executable {self.executable!r} not found; "
                    "install KTX-Software or set `toktx` in the config",
                    command=cmd,
                ) from exc

            if result.returncode != 0:
                logger.error("Error running %s with args %s", self.executable, cmd[1:])
                stderr = result.stderr.decode("utf-8", errors="replace").strip()
                raise EncoderError(
                    stderr or f"{self.executable} exited with status {result.returncode}",
                    command=cmd,
                    returncode=result.returncode,
                )

            if not output_path.is_file():
                raise EncoderError(
                    f"{self.executable} reported success but wrote no output", command=cmd
                )
            return output_path.read_bytes()
