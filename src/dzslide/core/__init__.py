"""Core algorithms for dzslide.

This package contains the deep-zoom pyramid geometry resolver and the
per-tile pipeline that turns a tile address into pixels.

Public API:
    - PyramidGeometry: Canonical power-of-two levels resolved against a slide.
    - TileAddressTranslator: Maps (level, row, column) to a native read.
    - TileExtractor: Reads a native region and resamples it to tile size.
    - MppResolver: Microns-per-pixel lookup with locale fallback.
    - PyramidHandle / open_pyramid: The surface a tile server uses.
    - PyramidObserver: Protocol for injectable trace hooks.
"""

from dzslide.core.extractor import TileExtractor
from dzslide.core.geometry import (
    PyramidGeometry,
    build_deep_zoom_dimensions,
    build_total_downsamples,
    tile_grid,
)
from dzslide.core.mpp import UNKNOWN_MPP, MppResolver, parse_mpp
from dzslide.core.observer import LoggingObserver, NullObserver, PyramidObserver
from dzslide.core.pyramid import PyramidHandle, open_pyramid
from dzslide.core.translator import TileAddressTranslator

__all__ = [
    "UNKNOWN_MPP",
    "LoggingObserver",
    "MppResolver",
    "NullObserver",
    "PyramidGeometry",
    "PyramidHandle",
    "PyramidObserver",
    "TileAddressTranslator",
    "TileExtractor",
    "build_deep_zoom_dimensions",
    "build_total_downsamples",
    "open_pyramid",
    "parse_mpp",
    "tile_grid",
]
