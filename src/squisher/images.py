"""
Pre-encode stage: make sure an image fits the encoder's size limit.

Pipeline per image:
1) Read the dimensions from the header only (no pixel decode).
2) If the longest edge exceeds max_size, decode, Lanczos-resize to fit while
   keeping the aspect ratio, and re-encode losslessly as PNG.
3) Hand the (possibly untouched) bytes to the encoder.
"""

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import MalformedInputError
from .sources import SourceImage

logger = logging.getLogger(__name__)

MAX_SIZE = 4096

FORMAT_SUFFIXES = {"PNG": ".png", "JPEG": ".jpg"}

# modes Pillow can write to PNG without conversion
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    pil_format: str
    width: int
    height: int
    resized: bool = False

    @property
    def suffix(self) -> str:
        return FORMAT_SUFFIXES[self.pil_format]


@contextmanager
def _oversize_allowed() -> Iterator[None]:
    """
    Lift Pillow's decompression-bomb limit for the duration of the block.

    Oversized textures are the input the resize stage exists for, and the
    pixel count is already bounded by the container the bytes came from.
    """
    limit = Image.MAX_IMAGE_PIXELS
    Image.MAX_IMAGE_PIXELS = None
    try:
        yield
    finally:
        Image.MAX_IMAGE_PIXELS = limit


def probe_image(data: bytes) -> Tuple[str, int, int]:
    """Return (format, width, height) read from the image header."""
    try:
        with _oversize_allowed(), Image.open(io.BytesIO(data)) as img:
            return img.format, img.width, img.height
    except UnidentifiedImageError as exc:
        raise MalformedInputError("Image data is not a readable PNG or JPEG") from exc


def fit_within(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """Scale (width, height) so the longest edge is at most max_size."""
    longest = max(width, height)
    if longest <= max_size:
        return width, height
    scale = max_size / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def resize_to_png(data: bytes, size: Tuple[int, int]) -> bytes:
    with _oversize_allowed(), Image.open(io.BytesIO(data)) as img:
        # JPEG can decode straight at a reduced scale
        img.draft(img.mode, size)
        img.load()
        if img.mode not in _PNG_MODES:
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        resized = img.resize(size, Image.LANCZOS, reducing_gap=3.0)
    buf = io.BytesIO()
    resized.save(buf, format="PNG")
    return buf.getvalue()


def prepare_image(source: SourceImage, max_size: int = MAX_SIZE) -> PreparedImage:
    """
    Run the resize stage for one source image.

    Args:
        source: Resolved PNG/JPEG bytes.
        max_size: Longest edge the encoder should receive.

    Returns:
        PreparedImage carrying either the original bytes or a resized PNG.
    """
    pil_format, width, height = probe_image(source.data)
    if pil_format not in FORMAT_SUFFIXES:
        raise MalformedInputError(
            f"Image {source.image_index} is declared {source.mime_type} but contains {pil_format} data"
        )
    if pil_format != source.pil_format:
        logger.warning(
            "Image %d is declared %s but contains %s data",
            source.image_index, source.mime_type, pil_format,
        )

    new_size = fit_within(width, height, max_size)
    if new_size == (width, height):
        return PreparedImage(source.data, pil_format, width, height)

    logger.warning(
        "Image %d is too large! (%dx%d), resizing to %dx%d",
        source.image_index, width, height, *new_size,
    )
    png = resize_to_png(source.data, new_size)
    return PreparedImage(png, "PNG", new_size[0], new_size[1], resized=True)
