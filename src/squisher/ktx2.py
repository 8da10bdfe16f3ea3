"""Read the fixed KTX2 header, enough to check what the encoder produced."""

import struct
from dataclasses import dataclass

KTX2_IDENTIFIER = b"\xabKTX 20\xbb\r\n\x1a\n"
HEADER_SIZE = 48

VK_FORMAT_NAMES = {
    0: "UNDEFINED",
    37: "R8G8B8A8_UNORM",
    43: "R8G8B8A8_SRGB",
    157: "ASTC_4x4_UNORM_BLOCK",
    158: "ASTC_4x4_SRGB_BLOCK",
    165: "ASTC_6x6_UNORM_BLOCK",
    166: "ASTC_6x6_SRGB_BLOCK",
}

SUPERCOMPRESSION_NAMES = {
    0: "none",
    1: "BasisLZ",
    2: "Zstandard",
    3: "ZLIB",
}


@dataclass(frozen=True)
class Ktx2Header:
    vk_format: int
    type_size: int
    width: int
    height: int
    depth: int
    layer_count: int
    face_count: int
    level_count: int
    supercompression_scheme: int

    @property
    def format_name(self) -> str:
        return VK_FORMAT_NAMES.get(self.vk_format, f"VkFormat({self.vk_format})")

    @property
    def supercompression_name(self) -> str:
        return SUPERCOMPRESSION_NAMES.get(
            self.supercompression_scheme, f"scheme({self.supercompression_scheme})"
        )


def is_ktx2(data: bytes) -> bool:
    return data[:len(KTX2_IDENTIFIER)] == KTX2_IDENTIFIER


def read_header(data: bytes) -> Ktx2Header:
    if not is_ktx2(data):
        raise ValueError("Not a KTX2 file (identifier mismatch)")
    if len(data) < HEADER_SIZE:
        raise ValueError("Truncated KTX2 header")
    fields = struct.unpack_from("<9I", data, len(KTX2_IDENTIFIER))
    return Ktx2Header(*fields)
