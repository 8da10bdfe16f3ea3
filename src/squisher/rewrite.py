"""
Rebuild a GLB around replacement image bytes.

Given the original document and {image index: KTX2 bytes}:
1) map each buffer view to the first processed image it backs (if any);
2) copy views in order into a new blob, substituting compressed bytes;
3) append new views for processed images that were referenced by uri, or
   that share a view with an earlier image encoded to different bytes;
4) retag processed images as image/ktx2;
5) collapse buffers into one sized to the new blob;
6) serialize with padded chunks and a recomputed header length.
"""

import logging
from typing import Any, Dict, List, Mapping, Set

from .document import Document
from .errors import MalformedInputError
from .glb import align_to_4, write_glb

logger = logging.getLogger(__name__)

KTX2_MIME_TYPE = "image/ktx2"

# buffer keys that survive the rebuild
_BUFFER_KEEP = ("name", "extensions", "extras")


def _append_aligned(blob: bytearray, data: bytes) -> int:
    """Zero-pad blob to a 4-byte boundary, append data, return its offset."""
    blob.extend(b"\x00" * (align_to_4(len(blob)) - len(blob)))
    offset = len(blob)
    blob.extend(data)
    return offset


def rewrite(document: Document, compressed: Mapping[int, bytes]) -> bytes:
    """
    Produce the output container bytes.

    Args:
        document: Parsed input; consumed by this call.
        compressed: Encoded bytes keyed by image index (not texture index).

    Returns:
        Complete GLB file contents.
    """
    document.consume()
    gltf = document.gltf
    blob = document.blob
    images: List[Dict[str, Any]] = gltf.get("images", [])

    for image_index in compressed:
        if not 0 <= image_index < len(images):
            raise MalformedInputError(f"Compressed data given for missing image {image_index}")

    # Which view backs which processed image; later sharers with other bytes split off
    view_to_image: Dict[int, int] = {}
    detached: Set[int] = set()
    for index, image in enumerate(images):
        view_index = image.get("bufferView")
        if view_index is None or index not in compressed:
            continue
        owner = view_to_image.setdefault(view_index, index)
        if compressed[owner] != compressed[index]:
            detached.add(index)

    new_blob = bytearray()
    new_views: List[Dict[str, Any]] = []

    for index, view in enumerate(gltf.get("bufferViews", [])):
        image_index = view_to_image.get(index)
        if image_index is not None:
            data = compressed[image_index]
        else:
            start = view.get("byteOffset", 0) or 0
            data = blob[start:start + view["byteLength"]]

        new_view = dict(view)
        new_view["buffer"] = 0
        new_view["byteOffset"] = _append_aligned(new_blob, data)
        new_view["byteLength"] = len(data)
        new_views.append(new_view)

    # Images behind a uri, or split off a shared view, get a view of their own
    for index, image in enumerate(images):
        if index not in compressed:
            view_index = image.get("bufferView")
            if view_index in view_to_image:
                # the shared view now holds another image's KTX2 bytes
                view = gltf["bufferViews"][view_index]
                start = view.get("byteOffset", 0) or 0
                data = blob[start:start + view["byteLength"]]
                offset = _append_aligned(new_blob, data)
                new_views.append({"buffer": 0, "byteOffset": offset, "byteLength": len(data)})
                image["bufferView"] = len(new_views) - 1
            continue
        image["mimeType"] = KTX2_MIME_TYPE
        if image.get("uri") is None and index not in detached:
            continue

        data = compressed[index]
        offset = _append_aligned(new_blob, data)
        new_views.append({"buffer": 0, "byteOffset": offset, "byteLength": len(data)})
        image.pop("uri", None)
        image["bufferView"] = len(new_views) - 1
        logger.debug("Image %d embedded as bufferView %d", index, len(new_views) - 1)

    if new_views:
        gltf["bufferViews"] = new_views

    old_buffers = gltf.get("buffers") or [{}]
    buffer = {key: old_buffers[0][key] for key in _BUFFER_KEEP if key in old_buffers[0]}
    buffer["byteLength"] = len(new_blob)
    gltf["buffers"] = [buffer]

    return write_glb(gltf, bytes(new_blob))
