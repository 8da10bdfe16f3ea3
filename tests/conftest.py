import io
import json
import struct

import numpy as np
import pytest
from PIL import Image

from squisher.cache import EncodeCache, MemoryStore
from squisher.config_utils import SquishSettings
from squisher.ktx2 import KTX2_IDENTIFIER


def encode_image(fmt="PNG", size=(8, 8), channels=3, seed=0) -> bytes:
    """Random-noise PNG/JPEG bytes of the given size."""
    rng = np.random.default_rng(seed)
    width, height = size
    if channels == 1:
        pixels = rng.integers(0, 256, size=(height, width), dtype=np.uint8)
    else:
        pixels = rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt)
    return buf.getvalue()


def pack_glb(gltf, blob, version=2, extra_chunks=()) -> bytes:
    json_bytes = json.dumps(gltf).encode("utf-8")
    json_bytes += b" " * ((4 - len(json_bytes) % 4) % 4)
    chunks = struct.pack("<II", len(json_bytes), 0x4E4F534A) + json_bytes
    if blob is not None:
        blob = bytes(blob) + b"\x00" * ((4 - len(blob) % 4) % 4)
        chunks += struct.pack("<II", len(blob), 0x004E4942) + blob
    for chunk_type, data in extra_chunks:
        chunks += struct.pack("<II", len(data), chunk_type) + data
    return struct.pack("<4sII", b"glTF", version, 12 + len(chunks)) + chunks


class GltfBuilder:
    """Assemble a small single-buffer glTF document plus blob."""

    def __init__(self):
        self.gltf = {
            "asset": {"version": "2.0"},
            "bufferViews": [],
            "images": [],
            "textures": [],
            "materials": [],
        }
        self.blob = bytearray()

    def add_view(self, data: bytes) -> int:
        self.blob.extend(b"\x00" * ((4 - len(self.blob) % 4) % 4))
        offset = len(self.blob)
        self.blob.extend(data)
        self.gltf["bufferViews"].append(
            {"buffer": 0, "byteOffset": offset, "byteLength": len(data)}
        )
        return len(self.gltf["bufferViews"]) - 1

    def add_geometry(self) -> int:
        positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
        view = self.add_view(positions.tobytes())
        self.gltf.setdefault("accessors", []).append(
            {"bufferView": view, "componentType": 5126, "count": 3, "type": "VEC3"}
        )
        return view

    def add_embedded_image(self, data: bytes, mime_type="image/png") -> int:
        view = self.add_view(data)
        self.gltf["images"].append({"bufferView": view, "mimeType": mime_type})
        return len(self.gltf["images"]) - 1

    def add_uri_image(self, uri: str, mime_type=None) -> int:
        image = {"uri": uri}
        if mime_type:
            image["mimeType"] = mime_type
        self.gltf["images"].append(image)
        return len(self.gltf["images"]) - 1

    def add_texture(self, image_index) -> int:
        texture = {} if image_index is None else {"source": image_index}
        self.gltf["textures"].append(texture)
        return len(self.gltf["textures"]) - 1

    def add_material(self, base_color=None, metallic_roughness=None, normal=None,
                     emissive=None, occlusion=None) -> int:
        material = {}
        pbr = {}
        if base_color is not None:
            pbr["baseColorTexture"] = {"index": base_color}
        if metallic_roughness is not None:
            pbr["metallicRoughnessTexture"] = {"index": metallic_roughness}
        if pbr:
            material["pbrMetallicRoughness"] = pbr
        if normal is not None:
            material["normalTexture"] = {"index": normal, "scale": 1.0}
        if emissive is not None:
            material["emissiveTexture"] = {"index": emissive}
        if occlusion is not None:
            material["occlusionTexture"] = {"index": occlusion}
        self.gltf["materials"].append(material)
        return len(self.gltf["materials"]) - 1

    def to_bytes(self) -> bytes:
        gltf = json.loads(json.dumps(self.gltf))
        gltf["buffers"] = [{"byteLength": len(self.blob)}]
        return pack_glb(gltf, self.blob)

    def write(self, path) -> None:
        path.write_bytes(self.to_bytes())


class FakeEncoder:
    """Stands in for toktx: records calls and returns a tiny KTX2 payload."""

    def __init__(self):
        self.calls = []

    def encode(self, image, options):
        self.calls.append((image, options))
        vk_format = 43 if options.role.is_srgb else 37
        scheme = 2 if options.supercompression else 0
        header = KTX2_IDENTIFIER + struct.pack(
            "<9I", vk_format, 1, image.width, image.height, 0, 0, 1, 3, scheme
        )
        # odd-length body keeps the padding logic honest
        return header + options.role.value.encode("ascii") + image.data[:7]


@pytest.fixture
def make_image():
    return encode_image


@pytest.fixture
def make_glb():
    return pack_glb


@pytest.fixture
def builder():
    return GltfBuilder()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def memory_cache():
    return EncodeCache(MemoryStore())


@pytest.fixture
def settings(tmp_path):
    return SquishSettings(cache_dir=tmp_path / "cache")
