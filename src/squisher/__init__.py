"""
Rewrite GLB containers so their embedded images become GPU-ready KTX2 textures.

Provides the container reader/writer, the texture role classifier, the
content-addressed encode cache and the `toktx` encoder wrapper.
"""

from .errors import EncoderError, MalformedInputError, SquishError
from .pipeline import Squisher, squish_file

__version__ = "0.1.0"
__all__ = [
    "EncoderError",
    "MalformedInputError",
    "SquishError",
    "Squisher",
    "squish_file",
]
