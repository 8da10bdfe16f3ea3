"""
Read and write binary glTF (GLB) containers.

Layout:
  header      magic 'glTF', version 2, total length       (12 bytes)
  JSON chunk  length, type 'JSON', UTF-8 JSON padded with spaces
  BIN chunk   length, type 'BIN\\0', blob padded with zeros

Only the single-file binary form is handled; a textual .gltf with external
resources is rejected.
"""

import json
import struct
from pathlib import Path
from typing import Any, Dict, Iterator, Tuple

from .errors import MalformedInputError

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

CHUNK_JSON = 0x4E4F534A  # 'JSON'
CHUNK_BIN = 0x004E4942   # 'BIN\0'


def align_to_4(n: int) -> int:
    """Round n up to the next multiple of four."""
    return (n + 3) & ~3


def pad_to_4(data: bytes, fill: bytes = b"\x00") -> bytes:
    pad = align_to_4(len(data)) - len(data)
    if pad:
        return data + fill * pad
    return data


def _iter_chunks(data: bytes, length: int) -> Iterator[Tuple[int, bytes]]:
    idx = HEADER_SIZE
    while idx < length:
        if idx + CHUNK_HEADER_SIZE > length:
            raise MalformedInputError(f"Truncated chunk header at byte {idx}")
        chunk_len, chunk_type = struct.unpack_from("<II", data, idx)
        idx += CHUNK_HEADER_SIZE
        if idx + chunk_len > length:
            raise MalformedInputError(
                f"Chunk at byte {idx - CHUNK_HEADER_SIZE} claims {chunk_len} bytes, "
                f"only {length - idx} remain"
            )
        yield chunk_type, data[idx:idx + chunk_len]
        idx += chunk_len


def read_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    """
    Parse GLB bytes into the glTF JSON document and the binary blob.

    Args:
        data: Complete contents of a .glb file.

    Returns:
        gltf: Parsed JSON chunk.
        blob: Contents of the BIN chunk (including any trailing padding).

    Raises:
        MalformedInputError: bad magic/version/length, unparsable JSON, or no BIN chunk.
    """
    if len(data) < HEADER_SIZE:
        raise MalformedInputError("Not a valid GLB (header too short)")

    magic, version, length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        if data.lstrip()[:1] == b"{":
            raise MalformedInputError(
                "Input looks like textual glTF; only binary GLB containers are supported"
            )
        raise MalformedInputError(f"Not a GLB (magic mismatch: {magic!r})")
    if version != GLB_VERSION:
        raise MalformedInputError(f"Unsupported GLB version {version}, expected {GLB_VERSION}")
    if length > len(data):
        raise MalformedInputError(
            f"GLB header declares {length} bytes but only {len(data)} are present"
        )

    json_chunk = None
    bin_chunk = None
    for position, (chunk_type, chunk_data) in enumerate(_iter_chunks(data, length)):
        if position == 0:
            if chunk_type != CHUNK_JSON:
                raise MalformedInputError("First GLB chunk is not a JSON chunk")
            json_chunk = chunk_data
        elif position == 1 and chunk_type == CHUNK_BIN:
            bin_chunk = chunk_data
        # any other chunk type is reserved for extensions and skipped

    if json_chunk is None:
        raise MalformedInputError("No JSON chunk in GLB")

    try:
        gltf = json.loads(json_chunk.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedInputError(f"Invalid JSON in GLB file: {exc}") from exc
    if not isinstance(gltf, dict):
        raise MalformedInputError("GLB JSON chunk is not an object")

    if bin_chunk is None:
        raise MalformedInputError("No binary chunk in GLB file; nothing to squish")

    return gltf, bytes(bin_chunk)


def write_glb(gltf: Dict[str, Any], blob: bytes) -> bytes:
    """
    Serialize a glTF document and blob into GLB bytes.

    The JSON chunk is padded with spaces and the BIN chunk with zeros so both
    are multiples of four; the header length covers every chunk including its
    8-byte chunk header.
    """
    json_bytes = pad_to_4(
        json.dumps(gltf, separators=(",", ":"), ensure_ascii=False).encode("utf-8"),
        fill=b" ",
    )
    bin_bytes = pad_to_4(bytes(blob))

    total_len = (
        HEADER_SIZE
        + CHUNK_HEADER_SIZE + len(json_bytes)
        + CHUNK_HEADER_SIZE + len(bin_bytes)
    )
    return b"".join([
        struct.pack("<4sII", GLB_MAGIC, GLB_VERSION, total_len),
        struct.pack("<II", len(json_bytes), CHUNK_JSON),
        json_bytes,
        struct.pack("<II", len(bin_bytes), CHUNK_BIN),
        bin_bytes,
    ])


def load_glb(path: Path) -> Tuple[Dict[str, Any], bytes]:
    """Read a container from disk, rejecting anything that is not a .glb file."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".gltf":
        raise MalformedInputError("gltf files are not currently supported, sorry!")
    if suffix != ".glb":
        raise MalformedInputError(f"File does not have extension gltf or glb: {path}")

    with open(path, "rb") as f:
        data = f.read()
    return read_glb(data)
