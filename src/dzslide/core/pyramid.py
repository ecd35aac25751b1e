"""Deep Zoom view of one open slide.

PyramidHandle is the surface a tile server talks to. It owns the native
slide handle, resolves the pyramid geometry once, and serves tiles by
chaining TileAddressTranslator and TileExtractor.

Resource Model:
    One handle owns one native slide and releases it exactly once, on
    ``close()`` or context-manager exit. If anything fails after the native
    slide was opened but before the handle exists, the slide is closed
    before the error propagates.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image

from dzslide.config import Settings
from dzslide.config import settings as default_settings
from dzslide.core.extractor import TileExtractor
from dzslide.core.geometry import PyramidGeometry
from dzslide.core.mpp import MppResolver
from dzslide.core.observer import LoggingObserver, PyramidObserver
from dzslide.core.translator import TileAddressTranslator
from dzslide.dzi import dzi_xml
from dzslide.wsi.checked import CheckedSlide
from dzslide.wsi.exceptions import SlideClosedError, SlideNotFoundError
from dzslide.wsi.source import PROPERTY_NAME_VENDOR, OpenSlideSource, SlideSource
from dzslide.wsi.types import DeepZoomLevel, Dimensions, RegionRequest, TileAddress

if TYPE_CHECKING:
    from types import TracebackType

SourceFactory = Callable[[Path], SlideSource]


def open_pyramid(
    path: str | Path,
    *,
    tile_stride: int | None = None,
    overlap: int | None = None,
    source_factory: SourceFactory | None = None,
    observer: PyramidObserver | None = None,
    settings: Settings | None = None,
) -> PyramidHandle:
    """Open a slide and resolve its deep-zoom pyramid.

    Args:
        path: Path to the slide file.
        tile_stride: Tile edge before overlap. Defaults to settings.TILE_STRIDE.
        overlap: Per-side tile overlap. Defaults to settings.TILE_OVERLAP.
        source_factory: Opens the native slide. Defaults to
            OpenSlideSource.open.
        observer: Receives trace events. Defaults to a LoggingObserver.
        settings: Configuration. Defaults to the process settings.

    Returns:
        An open PyramidHandle.

    Raises:
        SlideNotFoundError: If the path does not exist (no decoder call made).
        OpenError: If the decoder cannot open the file.
        DecoderError: If the native level table cannot be read.
        GeometryError: If a deep-zoom level has no native level.
    """
    cfg = settings or default_settings
    observer = observer or LoggingObserver()
    slide_path = Path(path)
    if not slide_path.exists():
        raise SlideNotFoundError("File not found", path=slide_path)

    factory = source_factory or OpenSlideSource.open
    source = factory(slide_path)
    try:
        checked = CheckedSlide(source, slide_path)
        geometry = PyramidGeometry.resolve(
            checked,
            cfg.TILE_STRIDE if tile_stride is None else tile_stride,
            best_level_tolerance=cfg.BEST_LEVEL_TOLERANCE,
            easy_tolerance=cfg.EASY_LEVEL_TOLERANCE,
            observer=observer,
        )
        handle = PyramidHandle(
            slide_path,
            checked,
            geometry,
            overlap=cfg.TILE_OVERLAP if overlap is None else overlap,
            settings=cfg,
            observer=observer,
        )
    except BaseException:
        source.close()
        raise

    observer.on_event(
        "slide_opened",
        path=str(slide_path),
        levels=geometry.level_count,
        native_levels=len(geometry.native_levels),
    )
    return handle


class PyramidHandle:
    """An open slide exposed as a Deep Zoom pyramid.

    Usage:
        with open_pyramid("/path/to/slide.svs", tile_stride=254) as pyramid:
            print(pyramid.level_count, pyramid.full_resolution_size())
            tile = pyramid.get_tile_pixels(level=12, row=0, column=0)

    Attributes:
        path: Path to the opened slide.
    """

    __slots__ = (
        "_closed",
        "_extractor",
        "_geometry",
        "_mpp",
        "_observer",
        "_settings",
        "_slide",
        "_translator",
        "path",
    )

    def __init__(
        self,
        path: Path,
        slide: CheckedSlide,
        geometry: PyramidGeometry,
        *,
        overlap: int,
        settings: Settings,
        observer: PyramidObserver,
    ) -> None:
        """Wire the tiling components around an already resolved geometry.

        Prefer ``open_pyramid``, which also handles acquisition and cleanup.
        """
        self.path = path
        self._slide = slide
        self._geometry = geometry
        self._settings = settings
        self._observer = observer
        self._translator = TileAddressTranslator(geometry, overlap, observer)
        self._extractor = TileExtractor(slide, settings.background_rgb(), observer)
        self._mpp = MppResolver(slide, settings.MPP_MIN, settings.MPP_MAX, observer)
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise SlideClosedError("Slide is closed", path=self.path)

    @property
    def geometry(self) -> PyramidGeometry:
        """Return the resolved pyramid geometry."""
        self._ensure_open()
        return self._geometry

    @property
    def tile_stride(self) -> int:
        """Return the tile edge length before overlap."""
        self._ensure_open()
        return self._geometry.tile_stride

    @property
    def overlap(self) -> int:
        """Return the per-side tile overlap."""
        self._ensure_open()
        return self._translator.overlap

    @property
    def level_count(self) -> int:
        """Return the number of deep-zoom levels."""
        self._ensure_open()
        return self._geometry.level_count

    @property
    def level_dimensions(self) -> tuple[Dimensions, ...]:
        """Return the pixel size of each deep-zoom level (coarsest first)."""
        self._ensure_open()
        return self._geometry.level_dimensions

    @property
    def level_tiles(self) -> tuple[Dimensions, ...]:
        """Return the (columns, rows) tile grid of each deep-zoom level."""
        self._ensure_open()
        return self._geometry.level_tiles

    @property
    def levels(self) -> tuple[DeepZoomLevel, ...]:
        """Return the full deep-zoom level table."""
        self._ensure_open()
        return self._geometry.levels

    def easy_levels(self) -> tuple[int, ...]:
        """Return deep-zoom levels at native full resolution (no rescale)."""
        self._ensure_open()
        return self._geometry.easy_levels

    def full_resolution_size(self) -> Dimensions:
        """Return native level-0 dimensions."""
        self._ensure_open()
        return self._geometry.full_resolution

    def get_tile_region(self, level: int, row: int, column: int) -> RegionRequest:
        """Return the native read that serves a tile, without reading it.

        Raises:
            AddressOutOfRangeError: If the address is outside the pyramid.
        """
        self._ensure_open()
        return self._translator.translate(TileAddress(level, row, column))

    def get_tile_coordinates(
        self, level: int, row: int, column: int
    ) -> tuple[int, int, int, int]:
        """Return the level-0 rectangle (x, y, width, height) a tile reads."""
        self._ensure_open()
        return self._translator.tile_coordinates(TileAddress(level, row, column))

    def get_tile_pixels(self, level: int, row: int, column: int) -> Image.Image:
        """Return the RGB pixels of one deep-zoom tile.

        A failed request leaves the handle usable for later requests.

        Raises:
            AddressOutOfRangeError: If the address is outside the pyramid.
            DecoderError: If the decoder fails to read the region.
        """
        request = self.get_tile_region(level, row, column)
        return self._extractor.extract(request)

    def microns_per_pixel(self) -> float:
        """Return horizontal microns per pixel; 0.0 means unknown."""
        self._ensure_open()
        return self._mpp.microns_per_pixel()

    def microns_per_pixel_y(self) -> float:
        """Return vertical microns per pixel; 0.0 means unknown."""
        self._ensure_open()
        return self._mpp.microns_per_pixel_y()

    def property_value(self, name: str) -> str | None:
        """Return a raw decoder property, or None if absent."""
        self._ensure_open()
        return self._slide.property_value(name)

    @property
    def vendor(self) -> str:
        """Return the decoder's vendor name for the slide."""
        return self.property_value(PROPERTY_NAME_VENDOR) or "unknown"

    def get_dzi(self, fmt: str | None = None) -> str:
        """Return the .dzi XML descriptor for this pyramid."""
        self._ensure_open()
        return dzi_xml(
            self._geometry.full_resolution,
            self._geometry.tile_stride,
            self._translator.overlap,
            fmt or self._settings.TILE_FORMAT,
        )

    @property
    def closed(self) -> bool:
        """Return True once the handle has been closed."""
        return self._closed

    def close(self) -> None:
        """Release the native slide. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._slide.close()
        self._observer.on_event("slide_closed", path=str(self.path))

    def __enter__(self) -> PyramidHandle:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and close the slide."""
        self.close()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"PyramidHandle(path={self.path!r}, closed={self._closed})"
