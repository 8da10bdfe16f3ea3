"""
End-to-end squish of one container.

Flow:
  read -> classify (role per image) -> resolve + validate every source
       -> per image: cache lookup -> (miss) resize stage + encode -> cache store
       -> rewrite with {image index: KTX2 bytes}

Images are processed one at a time in document order. Any failure aborts the
run before output bytes exist.
"""

import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from .cache import DirectoryStore, EncodeCache, fingerprint
from .config_utils import SquishSettings
from .document import Document
from .encoder import ToktxEncoder
from .images import prepare_image
from .rewrite import rewrite
from .roles import EncodeOptions, TextureFormat, WorkItem, classify, dedupe_work_items
from .sources import SourceImage, resolve_source

logger = logging.getLogger(__name__)


@dataclass
class SquishStats:
    encoded: int = 0
    cached: int = 0
    resized: int = 0
    untouched: int = 0
    input_bytes: int = 0
    output_bytes: int = 0


class Squisher:
    """
    Compress every material texture of a document.

    Args:
        texture_format: Target GPU format.
        settings: Run configuration (encoder path, cache, limits).
        encoder: Anything with encode(PreparedImage, EncodeOptions) -> bytes;
            defaults to ToktxEncoder(settings.toktx).
        cache: EncodeCache to use; defaults to a DirectoryStore at settings.cache_dir.
    """

    def __init__(
        self,
        texture_format: TextureFormat,
        settings: Optional[SquishSettings] = None,
        encoder=None,
        cache: Optional[EncodeCache] = None,
    ):
        self.texture_format = texture_format
        self.settings = settings or SquishSettings()
        self.encoder = encoder if encoder is not None else ToktxEncoder(self.settings.toktx)
        if cache is None:
            cache = EncodeCache(DirectoryStore(self.settings.cache_dir), enabled=self.settings.use_cache)
        self.cache = cache
        self.stats = SquishStats()

    def plan(self, document: Document) -> List[Tuple[WorkItem, SourceImage]]:
        """Classify the document and resolve every source before any encoding."""
        items = dedupe_work_items(classify(document))
        return [(item, resolve_source(document, item.image_index)) for item in items]

    def compress(self, item: WorkItem, source: SourceImage) -> bytes:
        options = EncodeOptions(
            target_format=self.texture_format,
            role=item.role,
            supercompression=self.settings.supercompression,
            zstd_level=self.settings.zstd_level,
            astc_quality=self.settings.astc_quality,
            max_size=self.settings.max_size,
        )
        key = fingerprint(options, source.data)

        cached = self.cache.lookup(key)
        if cached is not None:
            logger.info("Image %d (%s): returning pre-compressed file", item.image_index, item.role.value)
            self.stats.cached += 1
            return cached

        if not self.cache.enabled:
            logger.debug("Deleting cache entry %s if it exists", key)
            self.cache.invalidate(key)

        logger.info("Compressing image %d as %s...", item.image_index, item.role.value)
        prepared = prepare_image(source, self.settings.max_size)
        if prepared.resized:
            self.stats.resized += 1
        data = self.encoder.encode(prepared, options)
        self.cache.save(key, data)
        self.stats.encoded += 1
        return data

    def optimize(self, document: Document) -> bytes:
        """Encode all material images and return the rewritten GLB bytes."""
        plan = self.plan(document)
        compressed: Dict[int, bytes] = {}
        progress = tqdm(plan, desc="Squishing textures", unit="img", leave=False,
                        disable=not sys.stderr.isatty())
        for item, source in progress:
            compressed[item.image_index] = self.compress(item, source)

        self.stats.untouched = len(document.images) - len(compressed)
        return rewrite(document, compressed)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def squish_file(
    input_path: Path,
    output_path: Path,
    texture_format: TextureFormat,
    settings: Optional[SquishSettings] = None,
    encoder=None,
    cache: Optional[EncodeCache] = None,
) -> SquishStats:
    """Squish input_path into output_path; nothing is written unless every step succeeds."""
    input_path = Path(input_path)
    output_path = Path(output_path)
    logger.info("Squishing %s", input_path)

    document = Document.open(input_path)
    squisher = Squisher(texture_format, settings=settings, encoder=encoder, cache=cache)
    output = squisher.optimize(document)
    _write_atomic(output_path, output)

    stats = squisher.stats
    stats.input_bytes = input_path.stat().st_size
    stats.output_bytes = len(output)
    logger.info(
        "Images: %d encoded, %d from cache, %d resized, %d untouched",
        stats.encoded, stats.cached, stats.resized, stats.untouched,
    )
    logger.info(
        "Size: %.2f MB -> %.2f MB",
        stats.input_bytes / 1024 / 1024, stats.output_bytes / 1024 / 1024,
    )
    logger.info("Squished file: %s! Enjoy", output_path)
    return stats
