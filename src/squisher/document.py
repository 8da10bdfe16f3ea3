"""
In-memory view of a GLB container: the glTF JSON graph plus its single blob.

The JSON stays a plain dict (as parsed); this module adds typed access to the
parts the squisher cares about (images, textures, buffer views) and enforces
the single-buffer layout the rewriter relies on.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import MalformedInputError
from .glb import load_glb, read_glb


@dataclass(frozen=True)
class EmbeddedSource:
    """Image bytes stored in a buffer view of the container blob."""
    view_index: int
    offset: int
    length: int
    mime_type: str


@dataclass(frozen=True)
class ExternalSource:
    """Image referenced by URI (a relative path or a data: URI)."""
    uri: str
    mime_type: Optional[str] = None


ImageSource = Union[EmbeddedSource, ExternalSource]


@dataclass
class Document:
    gltf: Dict[str, Any]
    blob: bytes
    path: Optional[Path] = None
    consumed: bool = False

    def __post_init__(self) -> None:
        self._check_buffers()

    @classmethod
    def from_bytes(cls, data: bytes, path: Optional[Path] = None) -> "Document":
        gltf, blob = read_glb(data)
        return cls(gltf=gltf, blob=blob, path=path)

    @classmethod
    def open(cls, path: Path) -> "Document":
        path = Path(path)
        gltf, blob = load_glb(path)
        return cls(gltf=gltf, blob=blob, path=path)

    # ---------------------------
    # Collections
    # ---------------------------
    @property
    def materials(self) -> List[Dict[str, Any]]:
        return self.gltf.get("materials", [])

    @property
    def textures(self) -> List[Dict[str, Any]]:
        return self.gltf.get("textures", [])

    @property
    def images(self) -> List[Dict[str, Any]]:
        return self.gltf.get("images", [])

    @property
    def buffer_views(self) -> List[Dict[str, Any]]:
        return self.gltf.get("bufferViews", [])

    @property
    def base_dir(self) -> Path:
        """Directory that relative image URIs resolve against."""
        if self.path is None:
            return Path.cwd()
        return self.path.resolve().parent

    # ---------------------------
    # Lookups
    # ---------------------------
    def view_range(self, view_index: int) -> Tuple[int, int]:
        """Return (byteOffset, byteLength) of a buffer view."""
        views = self.buffer_views
        if not 0 <= view_index < len(views):
            raise MalformedInputError(f"bufferView {view_index} does not exist")
        view = views[view_index]
        return view.get("byteOffset", 0) or 0, view["byteLength"]

    def view_bytes(self, view_index: int) -> bytes:
        offset, length = self.view_range(view_index)
        return self.blob[offset:offset + length]

    def texture_source(self, texture_index: int) -> Optional[int]:
        """Image index a texture samples from, or None if it declares no source."""
        textures = self.textures
        if not 0 <= texture_index < len(textures):
            raise MalformedInputError(f"Texture {texture_index} does not exist")
        source = textures[texture_index].get("source")
        if source is not None and not 0 <= source < len(self.images):
            raise MalformedInputError(
                f"Texture {texture_index} references missing image {source}"
            )
        return source

    def image_source(self, image_index: int) -> ImageSource:
        """Classify an image record as embedded or externally referenced."""
        images = self.images
        if not 0 <= image_index < len(images):
            raise MalformedInputError(f"Image {image_index} does not exist")
        image = images[image_index]
        view_index = image.get("bufferView")
        uri = image.get("uri")

        if view_index is not None and uri is not None:
            raise MalformedInputError(f"Image {image_index} has both a bufferView and a uri")
        if view_index is not None:
            mime_type = image.get("mimeType")
            if not mime_type:
                raise MalformedInputError(
                    f"Image {image_index} is stored in bufferView {view_index} without a mimeType"
                )
            offset, length = self.view_range(view_index)
            return EmbeddedSource(view_index, offset, length, mime_type)
        if uri is not None:
            return ExternalSource(uri, image.get("mimeType"))
        raise MalformedInputError(f"Image {image_index} has neither a bufferView nor a uri")

    def consume(self) -> None:
        """Mark the document as used up by a rewrite; a second rewrite is an error."""
        if self.consumed:
            raise RuntimeError("Document has already been rewritten and cannot be reused")
        self.consumed = True

    # ---------------------------
    # Validation
    # ---------------------------
    def _check_buffers(self) -> None:
        buffers = self.gltf.get("buffers", [])
        if len(buffers) > 1:
            raise MalformedInputError(
                f"Containers with {len(buffers)} buffers are not supported; expected one"
            )
        if buffers and buffers[0].get("uri") is not None:
            raise MalformedInputError("Buffer 0 points at an external uri instead of the GLB blob")

        views = self.buffer_views
        if views and not buffers:
            raise MalformedInputError("Document has bufferViews but no buffer")
        for index, view in enumerate(views):
            if view.get("buffer", 0) != 0:
                raise MalformedInputError(
                    f"bufferView {index} references buffer {view.get('buffer')}; only buffer 0 exists"
                )
            if "byteLength" not in view:
                raise MalformedInputError(f"bufferView {index} has no byteLength")
            offset, length = self.view_range(index)
            if offset < 0 or length < 0 or offset + length > len(self.blob):
                raise MalformedInputError(
                    f"bufferView {index} ({offset}+{length}) exceeds the {len(self.blob)}-byte blob"
                )
