"""dzslide: whole-slide images served as Deep Zoom pyramids."""

from dzslide.core import PyramidHandle, open_pyramid
from dzslide.wsi import (
    AddressOutOfRangeError,
    DecoderError,
    GeometryError,
    OpenError,
    PyramidError,
)

__version__ = "0.1.0"

__all__ = [
    "AddressOutOfRangeError",
    "DecoderError",
    "GeometryError",
    "OpenError",
    "PyramidError",
    "PyramidHandle",
    "__version__",
    "open_pyramid",
]
