"""
Resolve an image record to its raw encoded bytes (PNG or JPEG).

Embedded images are sliced out of the container blob. URI images are read
from the local filesystem (relative to the container) or decoded from a
base64 data: URI; remote URIs are never fetched.
"""

import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlsplit

from .document import Document, EmbeddedSource
from .errors import MalformedInputError

logger = logging.getLogger(__name__)

# MIME type -> Pillow format name
SUPPORTED_MIME_TYPES = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
}


@dataclass(frozen=True)
class SourceImage:
    image_index: int
    data: bytes
    mime_type: str
    embedded: bool

    @property
    def pil_format(self) -> str:
        return SUPPORTED_MIME_TYPES[self.mime_type]


def _check_mime(image_index: int, mime_type) -> str:
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise MalformedInputError(
            f"Image {image_index}: unsupported image MIME type {mime_type!r} "
            f"(supported: {', '.join(sorted(SUPPORTED_MIME_TYPES))})"
        )
    return mime_type


def _decode_data_uri(image_index: int, uri: str):
    header, sep, payload = uri[len("data:"):].partition(",")
    if not sep:
        raise MalformedInputError(f"Image {image_index}: malformed data URI")
    params = header.split(";")
    mime_type = params[0] or None
    if "base64" in params[1:]:
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedInputError(f"Image {image_index}: bad base64 in data URI") from exc
    else:
        data = unquote_to_bytes(payload)
    return data, mime_type


def _local_path(image_index: int, uri: str, base_dir: Path) -> Path:
    parts = urlsplit(uri)
    # single-letter schemes are Windows drive letters, not URI schemes
    if parts.scheme and len(parts.scheme) > 1:
        if parts.scheme != "file":
            raise MalformedInputError(
                f"Image {image_index}: non-local URI {uri!r} is not supported"
            )
        path = Path(unquote(parts.path))
    else:
        path = Path(unquote(uri))
    if not path.is_absolute():
        path = base_dir / path
    if not path.is_file():
        raise MalformedInputError(
            f"Corrupted glTF file or unsupported URI path - {uri}"
        )
    return path


def resolve_source(document: Document, image_index: int) -> SourceImage:
    """
    Fetch the raw bytes behind an image and validate its MIME type.

    Raises:
        MalformedInputError: unsupported MIME type, non-local URI or missing file.
    """
    source = document.image_source(image_index)

    if isinstance(source, EmbeddedSource):
        mime_type = _check_mime(image_index, source.mime_type)
        data = document.blob[source.offset:source.offset + source.length]
        return SourceImage(image_index, data, mime_type, embedded=True)

    uri = source.uri
    if uri.startswith("data:"):
        data, uri_mime = _decode_data_uri(image_index, uri)
        mime_type = _check_mime(image_index, source.mime_type or uri_mime)
        return SourceImage(image_index, data, mime_type, embedded=False)

    path = _local_path(image_index, uri, document.base_dir)
    mime_type = source.mime_type or mimetypes.guess_type(path.name)[0]
    mime_type = _check_mime(image_index, mime_type)
    logger.debug("Image %d: reading %s", image_index, path)
    with open(path, "rb") as f:
        data = f.read()
    return SourceImage(image_index, data, mime_type, embedded=False)
