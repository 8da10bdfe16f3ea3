"""
Texture roles in the glTF material model and the encoder options they imply.

Every populated texture slot of every material becomes one WorkItem tagged
with a TextureRole. Metallic-roughness and occlusion share a role since they
are usually packed into the same image.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .document import Document
from .errors import MalformedInputError

logger = logging.getLogger(__name__)


class TextureRole(Enum):
    BASE_COLOR = "base_color"
    NORMAL = "normal"
    METALLIC_ROUGHNESS_OCCLUSION = "metallic_roughness_occlusion"
    EMISSIVE = "emissive"

    @property
    def is_srgb(self) -> bool:
        return self in (TextureRole.BASE_COLOR, TextureRole.EMISSIVE)

    @property
    def block_size(self) -> str:
        """ASTC block footprint; colour data tolerates the coarser 6x6 grid."""
        return "6x6" if self.is_srgb else "4x4"


class TextureFormat(Enum):
    RGBA8 = "rgba8"
    ASTC = "astc"

    @classmethod
    def parse(cls, value: str) -> "TextureFormat":
        aliases = {"raw": cls.RGBA8, "rgba8": cls.RGBA8, "astc": cls.ASTC}
        try:
            return aliases[value.lower()]
        except KeyError:
            raise ValueError(
                f"unknown texture format '{value}', expected 'raw' or 'astc'"
            ) from None


@dataclass(frozen=True)
class EncodeOptions:
    """Everything that influences the encoder's output for one image."""
    target_format: TextureFormat
    role: TextureRole
    supercompression: bool = True
    zstd_level: int = 18
    astc_quality: str = "thorough"
    max_size: int = 4096

    @property
    def transfer_function(self) -> str:
        return "srgb" if self.role.is_srgb else "linear"

    @property
    def block_size(self) -> Optional[str]:
        if self.target_format is TextureFormat.ASTC:
            return self.role.block_size
        return None

    @property
    def normalize(self) -> bool:
        return self.role is TextureRole.NORMAL

    def cache_token(self) -> bytes:
        """Deterministic byte string covering every output-affecting option."""
        fields = [
            "v1",
            self.target_format.value,
            self.role.value,
            f"zcmp={self.zstd_level if self.supercompression else 0}",
            f"quality={self.astc_quality if self.target_format is TextureFormat.ASTC else '-'}",
            f"max={self.max_size}",
        ]
        return "|".join(fields).encode("ascii")


# (path inside the material, role) in the order slots are visited
MATERIAL_SLOTS: List[Tuple[Tuple[str, ...], TextureRole]] = [
    (("pbrMetallicRoughness", "baseColorTexture"), TextureRole.BASE_COLOR),
    (("pbrMetallicRoughness", "metallicRoughnessTexture"), TextureRole.METALLIC_ROUGHNESS_OCCLUSION),
    (("normalTexture",), TextureRole.NORMAL),
    (("emissiveTexture",), TextureRole.EMISSIVE),
    (("occlusionTexture",), TextureRole.METALLIC_ROUGHNESS_OCCLUSION),
]


@dataclass(frozen=True)
class WorkItem:
    image_index: int
    role: TextureRole
    material_index: int
    texture_index: int
    slot: str


def _lookup(material: Dict, path: Tuple[str, ...]) -> Optional[Dict]:
    node = material
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def classify(document: Document) -> List[WorkItem]:
    """
    Walk every material slot and tag the image behind it with its role.

    The document is not modified. An image used by several slots appears once
    per slot; see dedupe_work_items.

    Raises:
        MalformedInputError: a slot names a texture or image that does not exist.
    """
    items: List[WorkItem] = []
    for material_index, material in enumerate(document.materials):
        for path, role in MATERIAL_SLOTS:
            info = _lookup(material, path)
            if info is None:
                continue
            slot = ".".join(path)
            if not isinstance(info, dict) or "index" not in info:
                raise MalformedInputError(
                    f"Material {material_index} {slot} has no texture index"
                )
            texture_index = info["index"]
            image_index = document.texture_source(texture_index)
            if image_index is None:
                logger.warning(
                    "Material %d %s: texture %d has no source image, skipping",
                    material_index, slot, texture_index,
                )
                continue
            items.append(WorkItem(image_index, role, material_index, texture_index, slot))
    return items


def dedupe_work_items(items: List[WorkItem]) -> List[WorkItem]:
    """
    Keep one work item per image index.

    A later visit overwrites an earlier one, so on conflicting roles the last
    slot visited decides the encoding; the item keeps its first-seen position.
    """
    latest: Dict[int, WorkItem] = {}
    for item in items:
        seen = latest.get(item.image_index)
        if seen is not None and seen.role is not item.role:
            logger.warning(
                "Image %d is used as %s (material %d %s) and %s (material %d %s); "
                "encoding it as %s",
                item.image_index,
                seen.role.value, seen.material_index, seen.slot,
                item.role.value, item.material_index, item.slot,
                item.role.value,
            )
        latest[item.image_index] = item
    return list(latest.values())
