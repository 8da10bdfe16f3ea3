"""
Inspect a GLB container: header, chunks, document counts and the image table.

Usage:
    squisher-inspect <path_to_glb>
"""

import argparse
import struct
import sys
from pathlib import Path
from typing import Any, Dict, List

from .document import Document, EmbeddedSource
from .errors import SquishError
from .glb import CHUNK_HEADER_SIZE, HEADER_SIZE
from .ktx2 import is_ktx2, read_header


def describe_images(document: Document) -> List[Dict[str, Any]]:
    """One summary dict per image record."""
    rows = []
    for index, image in enumerate(document.images):
        source = document.image_source(index)
        row: Dict[str, Any] = {"index": index, "mimeType": image.get("mimeType")}
        if isinstance(source, EmbeddedSource):
            row["source"] = f"bufferView {source.view_index}"
            row["bytes"] = source.length
            data = document.view_bytes(source.view_index)
            if is_ktx2(data):
                header = read_header(data)
                row["ktx2"] = {
                    "format": header.format_name,
                    "size": (header.width, header.height),
                    "levels": header.level_count,
                    "supercompression": header.supercompression_name,
                }
        else:
            row["source"] = "data uri" if source.uri.startswith("data:") else f"uri {source.uri}"
        rows.append(row)
    return rows


def inspect_glb(glb_path: Path) -> Dict[str, Any]:
    """Print and return a summary of a GLB file."""
    with open(glb_path, "rb") as f:
        data = f.read()

    print(f"\n{'=' * 70}")
    print(f"Inspecting: {glb_path.name}")
    print(f"{'=' * 70}")

    document = Document.from_bytes(data, path=glb_path)
    magic, version, length = struct.unpack_from("<4sII", data, 0)
    json_len, = struct.unpack_from("<I", data, HEADER_SIZE)
    bin_len, = struct.unpack_from("<I", data, HEADER_SIZE + CHUNK_HEADER_SIZE + json_len)

    print("\nGLB Header:")
    print(f"   Magic: {magic}")
    print(f"   Version: {version}")
    print(f"   Total Length: {length:,} bytes")
    print(f"   JSON Chunk: {json_len:,} bytes")
    print(f"   Binary Chunk: {bin_len:,} bytes")

    gltf = document.gltf
    print("\nGLTF Structure:")
    for key in ("buffers", "bufferViews", "materials", "textures", "images"):
        print(f"   {key}: {len(gltf.get(key, []))}")

    images = describe_images(document)
    print(f"\nImages ({len(images)}):")
    for row in images:
        line = f"   [{row['index']}] {row['mimeType']}  {row['source']}"
        if "bytes" in row:
            line += f"  {row['bytes']:,} bytes"
        if "ktx2" in row:
            k = row["ktx2"]
            line += (
                f"  {k['format']} {k['size'][0]}x{k['size'][1]}"
                f" levels={k['levels']} supercompression={k['supercompression']}"
            )
        print(line)

    return {
        "version": version,
        "length": length,
        "json_length": json_len,
        "bin_length": bin_len,
        "images": images,
    }


def run(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Inspect the structure and images of a GLB file.")
    parser.add_argument("input", type=Path, help="GLB file to inspect")
    args = parser.parse_args(argv)

    if not args.input.exists():
        print(f"ERROR: File not found: {args.input}")
        return 1
    try:
        inspect_glb(args.input)
    except SquishError as exc:
        print(f"ERROR: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
