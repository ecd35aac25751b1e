"""Type definitions for the slide pyramid layer.

Two level-indexing schemes coexist here:

- Native levels follow the OpenSlide convention: level 0 is the highest
  resolution and indices grow towards coarser layers.
- Deep-zoom levels follow the Deep Zoom convention: level 0 is the coarsest
  (1x1 pixel) layer and the last index is the full resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


class Dimensions(NamedTuple):
    """Pixel extent as (width, height)."""

    width: int
    height: int


class TileAddress(NamedTuple):
    """Address of one tile in the deep-zoom pyramid.

    Attributes:
        level: Deep-zoom level (0 = coarsest).
        row: Tile row within the level's grid.
        column: Tile column within the level's grid.
    """

    level: int
    row: int
    column: int


@dataclass(frozen=True)
class NativeLevel:
    """One resolution layer as reported by the slide decoder.

    Attributes:
        index: Native level index (0 = highest resolution).
        dimensions: Pixel size of this level.
        downsample: Downsample factor relative to level 0 (1.0 for level 0).
    """

    index: int
    dimensions: Dimensions
    downsample: float


@dataclass(frozen=True)
class DeepZoomLevel:
    """One layer of the canonical power-of-two pyramid.

    Attributes:
        index: Deep-zoom level index (0 = coarsest).
        dimensions: Pixel size of this level.
        total_downsample: Exact downsample from native level 0, a power of two.
        native_level: Native level read to serve this level.
        residual_downsample: total_downsample divided by the chosen native
            level's downsample. 1.0 means tiles are served without resampling.
        tiles: Tile grid size as (columns, rows).
    """

    index: int
    dimensions: Dimensions
    total_downsample: int
    native_level: int
    residual_downsample: float
    tiles: Dimensions


@dataclass(frozen=True)
class RegionRequest:
    """A fully resolved native read for one tile.

    Attributes:
        native_level: Native level to read from.
        origin_x: Left edge in native level-0 coordinates.
        origin_y: Top edge in native level-0 coordinates.
        width: Region width in native-level pixels.
        height: Region height in native-level pixels.
        tile_size: Overlap-adjusted deep-zoom tile size the read must end up as.
    """

    native_level: int
    origin_x: int
    origin_y: int
    width: int
    height: int
    tile_size: Dimensions

    @property
    def location(self) -> tuple[int, int]:
        """Return the level-0 origin as an (x, y) tuple."""
        return (self.origin_x, self.origin_y)

    @property
    def size(self) -> Dimensions:
        """Return the native region size."""
        return Dimensions(self.width, self.height)

    @property
    def needs_resample(self) -> bool:
        """Return True when the native read differs from the tile size."""
        return self.size != self.tile_size
