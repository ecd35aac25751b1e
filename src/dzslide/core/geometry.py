"""Deep-zoom pyramid geometry resolved against a native slide pyramid.

A native pyramid has whatever levels the scanner vendor chose (often
downsamples of 4 or irregular ratios). Deep Zoom viewers expect a pyramid
where every level halves the previous one, down to a single pixel. This
module derives that canonical pyramid once per slide and, for each
deep-zoom level, records the native level to read and the residual
downsample still to be applied after reading.

Level indexing:
    Deep-zoom level 0 is the coarsest (1x1). The last deep-zoom level is the
    full resolution and always maps to native level 0.

Algorithm Invariant:
    total_downsample(i) == 2 ** (M - 1 - i) exactly, independent of the
    native downsamples; only the native level choice depends on them.

    Easy levels are those whose total downsample is within tolerance of 1,
    i.e. the finest level. Other levels may still map 1:1 onto a native
    level; RegionRequest.needs_resample decides whether a read is resized.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

from dzslide.core.observer import NullObserver, PyramidObserver
from dzslide.wsi.exceptions import DecoderError, GeometryError
from dzslide.wsi.types import DeepZoomLevel, Dimensions, NativeLevel

if TYPE_CHECKING:
    from dzslide.wsi.checked import CheckedSlide

DEFAULT_BEST_LEVEL_TOLERANCE = 1.01
DEFAULT_EASY_LEVEL_TOLERANCE = 0.01


def build_deep_zoom_dimensions(full: Dimensions) -> tuple[Dimensions, ...]:
    """Derive deep-zoom level dimensions from the full-resolution size.

    Each axis is halved independently (rounding up, floored at 1) until
    both reach 1. The result is ordered coarsest first.

    Args:
        full: Native level-0 dimensions.

    Returns:
        Dimensions per deep-zoom level; the last entry equals ``full``.

    Raises:
        ValueError: If either dimension is not positive.
    """
    if full.width < 1 or full.height < 1:
        raise ValueError(f"Slide dimensions must be positive, got {full}")

    size = Dimensions(full.width, full.height)
    sizes = [size]
    while size.width > 1 or size.height > 1:
        size = Dimensions(
            max(1, math.ceil(size.width / 2)),
            max(1, math.ceil(size.height / 2)),
        )
        sizes.append(size)
    return tuple(reversed(sizes))


def build_total_downsamples(level_count: int) -> tuple[int, ...]:
    """Return the power-of-two downsample from level 0 for each deep-zoom level."""
    return tuple(2 ** (level_count - 1 - index) for index in range(level_count))


def tile_grid(dimensions: Dimensions, tile_stride: int) -> Dimensions:
    """Return the (columns, rows) tile grid covering a level."""
    return Dimensions(
        math.ceil(dimensions.width / tile_stride),
        math.ceil(dimensions.height / tile_stride),
    )


class PyramidGeometry:
    """Resolved deep-zoom pyramid for one open slide.

    Built once when the slide is opened; read-only afterwards. The tile
    translator and extractor hold a reference to this object rather than
    copying its tables.

    Example:
        >>> geometry = PyramidGeometry.resolve(checked_slide, tile_stride=254)
        >>> geometry.level_count
        13
        >>> geometry.levels[-1].dimensions
        Dimensions(width=4096, height=3072)
    """

    __slots__ = ("_easy_levels", "_levels", "_native_levels", "_tile_stride")

    def __init__(
        self,
        native_levels: Sequence[NativeLevel],
        levels: Sequence[DeepZoomLevel],
        tile_stride: int,
        easy_tolerance: float = DEFAULT_EASY_LEVEL_TOLERANCE,
    ) -> None:
        """Store already-resolved level tables.

        Use ``resolve`` to build the tables from a slide.

        Args:
            native_levels: Native level table (index 0 = full resolution).
            levels: Deep-zoom level table (index 0 = coarsest).
            tile_stride: Tile edge length before overlap.
            easy_tolerance: Total-downsample tolerance for easy levels.
        """
        if not native_levels:
            raise ValueError("native_levels must not be empty")
        if not levels:
            raise ValueError("levels must not be empty")
        if tile_stride <= 0:
            raise ValueError(f"tile_stride must be positive, got {tile_stride}")
        self._native_levels = tuple(native_levels)
        self._levels = tuple(levels)
        self._tile_stride = tile_stride
        self._easy_levels = tuple(
            level.index
            for level in self._levels
            if abs(level.total_downsample - 1) < easy_tolerance
        )

    @classmethod
    def resolve(
        cls,
        slide: CheckedSlide,
        tile_stride: int,
        *,
        best_level_tolerance: float = DEFAULT_BEST_LEVEL_TOLERANCE,
        easy_tolerance: float = DEFAULT_EASY_LEVEL_TOLERANCE,
        observer: PyramidObserver | None = None,
    ) -> PyramidGeometry:
        """Resolve the deep-zoom pyramid against an open slide.

        Args:
            slide: Checked decoder boundary for the open slide.
            tile_stride: Tile edge length before overlap.
            best_level_tolerance: Multiplier applied to each total downsample
                before asking the decoder for the best native level, so an
                exact power-of-two boundary is not lost to float rounding.
            easy_tolerance: Total-downsample tolerance for easy levels.
            observer: Receives a ``geometry_resolved`` event.

        Returns:
            The resolved geometry.

        Raises:
            ValueError: If tile_stride is not positive.
            DecoderError: If the native level table cannot be read.
            GeometryError: If the decoder has no level for a downsample.
        """
        if tile_stride <= 0:
            raise ValueError(f"tile_stride must be positive, got {tile_stride}")
        observer = observer or NullObserver()
        native_levels = slide.native_levels()
        if not native_levels:
            raise GeometryError("Slide reports no native levels", path=slide.path)

        dimensions = build_deep_zoom_dimensions(native_levels[0].dimensions)
        totals = build_total_downsamples(len(dimensions))

        levels = []
        for index, (size, total) in enumerate(zip(dimensions, totals, strict=True)):
            native = cls._resolve_native_level(
                slide, native_levels, total, best_level_tolerance
            )
            levels.append(
                DeepZoomLevel(
                    index=index,
                    dimensions=size,
                    total_downsample=total,
                    native_level=native.index,
                    residual_downsample=total / native.downsample,
                    tiles=tile_grid(size, tile_stride),
                )
            )

        geometry = cls(native_levels, levels, tile_stride, easy_tolerance)
        observer.on_event(
            "geometry_resolved",
            levels=geometry.level_count,
            native_levels=len(native_levels),
            easy_levels=list(geometry.easy_levels),
            full_resolution=tuple(geometry.full_resolution),
        )
        return geometry

    @staticmethod
    def _resolve_native_level(
        slide: CheckedSlide,
        native_levels: Sequence[NativeLevel],
        total_downsample: int,
        tolerance: float,
    ) -> NativeLevel:
        """Pick the native level serving a total downsample.

        Raises:
            GeometryError: If the decoder cannot name a level.
        """
        try:
            index = slide.best_level_for_downsample(total_downsample * tolerance)
        except DecoderError as e:
            raise GeometryError(
                f"No native level for downsample {total_downsample}: {e.message}",
                path=slide.path,
                downsample=total_downsample,
            ) from e
        if not 0 <= index < len(native_levels):
            raise GeometryError(
                f"Decoder returned level {index} for downsample {total_downsample}, "
                f"expected [0, {len(native_levels) - 1}]",
                path=slide.path,
                downsample=total_downsample,
            )
        return native_levels[index]

    @property
    def tile_stride(self) -> int:
        """Return the tile edge length before overlap."""
        return self._tile_stride

    @property
    def native_levels(self) -> tuple[NativeLevel, ...]:
        """Return the native level table (index 0 = full resolution)."""
        return self._native_levels

    @property
    def levels(self) -> tuple[DeepZoomLevel, ...]:
        """Return the deep-zoom level table (index 0 = coarsest)."""
        return self._levels

    @property
    def level_count(self) -> int:
        """Return the number of deep-zoom levels."""
        return len(self._levels)

    @property
    def level_dimensions(self) -> tuple[Dimensions, ...]:
        """Return the pixel size of each deep-zoom level."""
        return tuple(level.dimensions for level in self._levels)

    @property
    def level_tiles(self) -> tuple[Dimensions, ...]:
        """Return the (columns, rows) tile grid of each deep-zoom level."""
        return tuple(level.tiles for level in self._levels)

    @property
    def tile_count(self) -> int:
        """Return the total number of tiles in the pyramid."""
        return sum(cols * rows for cols, rows in self.level_tiles)

    @property
    def full_resolution(self) -> Dimensions:
        """Return native level-0 dimensions."""
        return self._native_levels[0].dimensions

    @property
    def easy_levels(self) -> tuple[int, ...]:
        """Return deep-zoom levels whose total downsample is within tolerance of 1."""
        return self._easy_levels

    def level(self, index: int) -> DeepZoomLevel:
        """Return one deep-zoom level.

        Raises:
            IndexError: If index is out of range.
        """
        if index < 0 or index >= self.level_count:
            raise IndexError(
                f"Deep-zoom level {index} out of range [0, {self.level_count - 1}]"
            )
        return self._levels[index]

    def native_level(self, index: int) -> NativeLevel:
        """Return one native level.

        Raises:
            IndexError: If index is out of range.
        """
        if index < 0 or index >= len(self._native_levels):
            raise IndexError(
                f"Native level {index} out of range "
                f"[0, {len(self._native_levels) - 1}]"
            )
        return self._native_levels[index]

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"PyramidGeometry(full_resolution={tuple(self.full_resolution)}, "
            f"levels={self.level_count}, tile_stride={self._tile_stride})"
        )
