"""Tile address translation from deep-zoom coordinates to native reads.

A deep-zoom tile is a ``tile_stride`` square of its level, grown by one
overlap pixel on every side that touches another tile. Edge tiles are
partial and carry no overlap on the sides that touch the level boundary.

Coordinate chain for one axis:
    tile coord t
    -> deep-zoom pixel   z  = stride * t - overlap_before
    -> native-level px   l  = residual_downsample * z
    -> level-0 px        l0 = floor(native_downsample * l)

The native read size is ceil(residual_downsample * tile_size), clamped so
the read ends inside the native level.
"""

from __future__ import annotations

import math

from dzslide.core.geometry import PyramidGeometry
from dzslide.core.observer import NullObserver, PyramidObserver
from dzslide.wsi.exceptions import AddressOutOfRangeError
from dzslide.wsi.types import DeepZoomLevel, Dimensions, RegionRequest, TileAddress

DEFAULT_OVERLAP = 1


class TileAddressTranslator:
    """Maps deep-zoom tile addresses onto native region requests.

    Holds a reference to the resolved geometry; stateless otherwise, so one
    translator can serve concurrent requests.

    Example:
        >>> translator = TileAddressTranslator(geometry)
        >>> request = translator.translate(TileAddress(level=12, row=0, column=0))
        >>> request.native_level, request.location, request.size
        (0, (0, 0), Dimensions(width=255, height=255))
    """

    __slots__ = ("_geometry", "_observer", "_overlap")

    def __init__(
        self,
        geometry: PyramidGeometry,
        overlap: int = DEFAULT_OVERLAP,
        observer: PyramidObserver | None = None,
    ) -> None:
        """Initialize the translator.

        Args:
            geometry: Resolved pyramid geometry (tile stride comes from it).
            overlap: Pixels shared with each neighbouring tile (0 or 1).
            observer: Receives a ``tile_translated`` event per request.

        Raises:
            ValueError: If overlap is negative.
        """
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        self._geometry = geometry
        self._overlap = overlap
        self._observer = observer or NullObserver()

    @property
    def tile_stride(self) -> int:
        """Return the tile edge length before overlap."""
        return self._geometry.tile_stride

    @property
    def overlap(self) -> int:
        """Return the per-side overlap in pixels."""
        return self._overlap

    def translate(self, address: TileAddress) -> RegionRequest:
        """Resolve a tile address into the native read that serves it.

        Args:
            address: Deep-zoom (level, row, column).

        Returns:
            RegionRequest with a level-0 origin, a native-level size and the
            overlap-adjusted tile size.

        Raises:
            AddressOutOfRangeError: If the address is outside the pyramid or
                the level's tile grid. The decoder is never consulted.
        """
        level = self._validated_level(address)
        stride = self._geometry.tile_stride
        native = self._geometry.native_level(level.native_level)
        residual = level.residual_downsample

        tile = (address.column, address.row)
        grid = (level.tiles.width, level.tiles.height)
        extent = (level.dimensions.width, level.dimensions.height)
        native_extent = (native.dimensions.width, native.dimensions.height)

        overlap_before = tuple(self._overlap * int(t != 0) for t in tile)
        overlap_after = tuple(
            self._overlap * int(t != limit - 1)
            for t, limit in zip(tile, grid, strict=True)
        )
        tile_size = tuple(
            min(stride, limit - stride * t) + before + after
            for t, limit, before, after in zip(
                tile, extent, overlap_before, overlap_after, strict=True
            )
        )
        if min(tile_size) <= 0:
            raise AddressOutOfRangeError(
                f"Tile has non-positive size {tile_size}",
                level=address.level,
                row=address.row,
                column=address.column,
            )

        native_location = tuple(
            residual * (stride * t - before)
            for t, before in zip(tile, overlap_before, strict=True)
        )
        origin = tuple(
            math.floor(native.downsample * location) for location in native_location
        )
        size = tuple(
            min(math.ceil(residual * z_size), limit - math.ceil(location))
            for z_size, limit, location in zip(
                tile_size, native_extent, native_location, strict=True
            )
        )
        if min(origin) < 0 or min(size) <= 0:
            raise AddressOutOfRangeError(
                f"Tile maps outside native level {native.index} "
                f"(origin={origin}, size={size})",
                level=address.level,
                row=address.row,
                column=address.column,
            )

        request = RegionRequest(
            native_level=native.index,
            origin_x=origin[0],
            origin_y=origin[1],
            width=size[0],
            height=size[1],
            tile_size=Dimensions(*tile_size),
        )
        self._observer.on_event(
            "tile_translated",
            level=address.level,
            row=address.row,
            column=address.column,
            native_level=request.native_level,
            location=request.location,
            size=tuple(request.size),
            tile_size=tuple(request.tile_size),
        )
        return request

    def tile_coordinates(self, address: TileAddress) -> tuple[int, int, int, int]:
        """Return the level-0 rectangle (x, y, width, height) read for a tile.

        Raises:
            AddressOutOfRangeError: If the address is invalid.
        """
        request = self.translate(address)
        downsample = self._geometry.native_level(request.native_level).downsample
        return (
            request.origin_x,
            request.origin_y,
            math.ceil(request.width * downsample),
            math.ceil(request.height * downsample),
        )

    def _validated_level(self, address: TileAddress) -> DeepZoomLevel:
        if any(value < 0 for value in address):
            raise AddressOutOfRangeError(
                "Tile address components must be non-negative",
                level=address.level,
                row=address.row,
                column=address.column,
            )
        if address.level >= self._geometry.level_count:
            raise AddressOutOfRangeError(
                f"Level must be in range [0, {self._geometry.level_count - 1}]",
                level=address.level,
                row=address.row,
                column=address.column,
            )
        level = self._geometry.level(address.level)
        columns, rows = level.tiles
        if address.column >= columns or address.row >= rows:
            raise AddressOutOfRangeError(
                f"Tile outside the {columns}x{rows} grid of level {address.level}",
                level=address.level,
                row=address.row,
                column=address.column,
            )
        return level
