"""Slide decoder capability interface and its OpenSlide implementation.

The pyramid core never talks to OpenSlide directly. It consumes the
SlideSource protocol, which mirrors the native decoder's calling
convention: failures are reported through sentinel return values plus a
separate, sticky error channel (``last_error``), never by raising.
``dzslide.wsi.checked`` turns that convention back into exceptions at a
single boundary.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import numpy as np
import openslide

from dzslide.wsi.exceptions import (
    OpenError,
    UnrecognizedFormatError,
    UnsupportedVendorError,
)

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import NDArray

# Sentinels returned by SlideSource calls after a failure
INVALID_LEVEL = -1
INVALID_DOWNSAMPLE = -1.0
INVALID_DIMENSIONS = (-1, -1)

# Property holding the horizontal pixel pitch in microns
PROPERTY_NAME_MPP_X = "openslide.mpp-x"
PROPERTY_NAME_MPP_Y = "openslide.mpp-y"
PROPERTY_NAME_VENDOR = "openslide.vendor"


class SlideSource(Protocol):
    """Protocol for an opened native slide handle.

    Every query returns a sentinel (-1, -1.0, (-1, -1) or None) on failure
    and records the reason in the error channel. Once an error is recorded
    the handle is unusable and every later call returns its sentinel.
    """

    def level_count(self) -> int:
        """Return the number of native levels, or -1."""
        ...

    def level_dimensions(self, level: int) -> tuple[int, int]:
        """Return (width, height) of a native level, or (-1, -1)."""
        ...

    def level_downsample(self, level: int) -> float:
        """Return the downsample of a native level relative to level 0, or -1.0."""
        ...

    def best_level_for_downsample(self, downsample: float) -> int:
        """Return the native level best suited to a downsample, or -1."""
        ...

    def read_region(
        self,
        buffer: NDArray[np.uint8],
        x: int,
        y: int,
        level: int,
        width: int,
        height: int,
    ) -> None:
        """Write a region into ``buffer`` in place.

        Args:
            buffer: Caller-allocated RGBA array of shape (height, width, 4).
            x: Left edge in level-0 coordinates.
            y: Top edge in level-0 coordinates.
            level: Native level to read.
            width: Region width in native-level pixels.
            height: Region height in native-level pixels.

        On failure the buffer is cleared to transparent black and the
        error channel is set; nothing is returned either way.
        """
        ...

    def property_value(self, name: str) -> str | None:
        """Return a slide property, or None if absent or on failure."""
        ...

    def last_error(self) -> str | None:
        """Return the recorded decoder error, or None."""
        ...

    def close(self) -> None:
        """Release the native handle."""
        ...


class OpenSlideSource:
    """SlideSource backed by openslide-python.

    openslide-python raises OpenSlideError where the C library returns a
    sentinel; this adapter records the message in its error channel and
    returns the sentinel, so the error stays sticky exactly as it does in
    the native library.

    Usage:
        source = OpenSlideSource.open("/path/to/slide.svs")
        try:
            levels = source.level_count()
        finally:
            source.close()
    """

    __slots__ = ("_error", "_path", "_slide")

    def __init__(self, slide: openslide.OpenSlide, path: str | Path) -> None:
        self._slide: openslide.OpenSlide | None = slide
        self._path = Path(path)
        self._error: str | None = None

    @classmethod
    def open(cls, path: str | Path) -> OpenSlideSource:
        """Open a slide file.

        Args:
            path: Path to an existing slide file.

        Returns:
            An open OpenSlideSource.

        Raises:
            UnsupportedVendorError: If OpenSlide detects a vendor for the
                file but fails to open it.
            UnrecognizedFormatError: If no vendor recognises the file.
            OpenError: For any other decoder failure during open.
        """
        try:
            slide = openslide.OpenSlide(str(path))
        except openslide.OpenSlideUnsupportedFormatError as e:
            vendor = cls.detect_vendor(path)
            if vendor is not None:
                raise UnsupportedVendorError(vendor, path=path) from e
            raise UnrecognizedFormatError("File unrecognized", path=path) from e
        except openslide.OpenSlideError as e:
            # A recognised vendor whose file fails to open still names the vendor
            vendor = cls.detect_vendor(path)
            if vendor is not None:
                raise UnsupportedVendorError(vendor, path=path) from e
            raise OpenError(f"Failed to open slide: {e}", path=path) from e
        return cls(slide, path)

    @staticmethod
    def detect_vendor(path: str | Path) -> str | None:
        """Return the vendor OpenSlide associates with a file, or None."""
        try:
            return openslide.OpenSlide.detect_format(str(path))
        except openslide.OpenSlideError:
            return None

    @property
    def path(self) -> Path:
        """Return the path of the opened slide."""
        return self._path

    def _usable(self) -> openslide.OpenSlide | None:
        if self._error is not None:
            return None
        if self._slide is None:
            self._error = "slide handle is closed"
            return None
        return self._slide

    def _record(self, error: Exception) -> None:
        self._error = str(error) or type(error).__name__

    def level_count(self) -> int:
        slide = self._usable()
        if slide is None:
            return INVALID_LEVEL
        try:
            return slide.level_count
        except openslide.OpenSlideError as e:
            self._record(e)
            return INVALID_LEVEL

    def level_dimensions(self, level: int) -> tuple[int, int]:
        slide = self._usable()
        if slide is None:
            return INVALID_DIMENSIONS
        try:
            dimensions = slide.level_dimensions
        except openslide.OpenSlideError as e:
            self._record(e)
            return INVALID_DIMENSIONS
        if not 0 <= level < len(dimensions):
            return INVALID_DIMENSIONS
        width, height = dimensions[level]
        return (width, height)

    def level_downsample(self, level: int) -> float:
        slide = self._usable()
        if slide is None:
            return INVALID_DOWNSAMPLE
        try:
            downsamples = slide.level_downsamples
        except openslide.OpenSlideError as e:
            self._record(e)
            return INVALID_DOWNSAMPLE
        if not 0 <= level < len(downsamples):
            return INVALID_DOWNSAMPLE
        return float(downsamples[level])

    def best_level_for_downsample(self, downsample: float) -> int:
        slide = self._usable()
        if slide is None:
            return INVALID_LEVEL
        try:
            return slide.get_best_level_for_downsample(downsample)
        except openslide.OpenSlideError as e:
            self._record(e)
            return INVALID_LEVEL

    def read_region(
        self,
        buffer: NDArray[np.uint8],
        x: int,
        y: int,
        level: int,
        width: int,
        height: int,
    ) -> None:
        slide = self._usable()
        if slide is None:
            buffer[...] = 0
            return
        try:
            region = slide.read_region((x, y), level, (width, height))
        except openslide.OpenSlideError as e:
            self._record(e)
            buffer[...] = 0
            return
        buffer[...] = np.asarray(region.convert("RGBA"), dtype=np.uint8)

    def property_value(self, name: str) -> str | None:
        slide = self._usable()
        if slide is None:
            return None
        try:
            return slide.properties.get(name)
        except openslide.OpenSlideError as e:
            self._record(e)
            return None

    def last_error(self) -> str | None:
        return self._error

    def close(self) -> None:
        """Close the slide and release the native handle. Idempotent."""
        if self._slide is None:
            return
        self._slide.close()
        self._slide = None

    def __enter__(self) -> OpenSlideSource:
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
        return f"OpenSlideSource(path={self._path!r})"
