"""Slide access layer for dzslide.

This package isolates the native whole-slide decoder (OpenSlide) behind a
small capability interface, so the deep-zoom geometry and tiling code can
be exercised against a fake decoder.

Key Components:
    - SlideSource: Protocol mirroring the decoder's sentinel/error-channel API
    - OpenSlideSource: SlideSource implemented with openslide-python
    - CheckedSlide: Boundary that turns sentinel returns into DecoderError
    - Types: Dimensions, NativeLevel, DeepZoomLevel, TileAddress, RegionRequest

Example:
    from dzslide.wsi import CheckedSlide, OpenSlideSource

    source = OpenSlideSource.open("slide.svs")
    try:
        slide = CheckedSlide(source, "slide.svs")
        for level in slide.native_levels():
            print(level.index, level.dimensions, level.downsample)
    finally:
        source.close()
"""

from dzslide.wsi.checked import CheckedSlide
from dzslide.wsi.exceptions import (
    AddressOutOfRangeError,
    DecoderError,
    GeometryError,
    OpenError,
    PyramidError,
    SlideClosedError,
    SlideNotFoundError,
    UnrecognizedFormatError,
    UnsupportedVendorError,
)
from dzslide.wsi.source import OpenSlideSource, SlideSource
from dzslide.wsi.types import (
    DeepZoomLevel,
    Dimensions,
    NativeLevel,
    RegionRequest,
    TileAddress,
)

__all__ = [
    "AddressOutOfRangeError",
    "CheckedSlide",
    "DecoderError",
    "DeepZoomLevel",
    "Dimensions",
    "GeometryError",
    "NativeLevel",
    "OpenError",
    "OpenSlideSource",
    "PyramidError",
    "RegionRequest",
    "SlideClosedError",
    "SlideNotFoundError",
    "SlideSource",
    "TileAddress",
    "UnrecognizedFormatError",
    "UnsupportedVendorError",
]
