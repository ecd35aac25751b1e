"""Exception-raising boundary over a SlideSource.

Every decoder call made by the pyramid core goes through CheckedSlide, so
the "sentinel, then query the error channel" step lives in exactly one
place instead of at each call site.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from dzslide.wsi.exceptions import DecoderError
from dzslide.wsi.source import INVALID_DOWNSAMPLE, INVALID_LEVEL
from dzslide.wsi.types import Dimensions, NativeLevel

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from dzslide.wsi.source import SlideSource


class CheckedSlide:
    """Wraps a SlideSource and raises DecoderError on sentinel returns.

    Attributes:
        source: The wrapped decoder handle.
        path: Slide path used for error context.
    """

    __slots__ = ("path", "source")

    def __init__(self, source: SlideSource, path: Path | str | None = None) -> None:
        self.source = source
        self.path = Path(path) if path else None

    def fail(
        self,
        operation: str,
        *,
        level: int | None = None,
        location: tuple[int, int] | None = None,
        size: tuple[int, int] | None = None,
    ) -> DecoderError:
        """Build the DecoderError for a failed call from the error channel.

        Args:
            operation: Name of the failed decoder call.
            level: Native level involved, if any.
            location: Level-0 origin of a region read, if any.
            size: Size of a region read, if any.

        Returns:
            DecoderError carrying the decoder's message, or flagged as a
            contract violation when the channel is empty.
        """
        error = self.source.last_error()
        if error:
            message = f"Decoder error: {error}"
        else:
            message = "Decoder returned a failure but its error channel is empty"
        return DecoderError(
            message,
            path=self.path,
            operation=operation,
            decoder_message=error or None,
            level=level,
            location=location,
            size=size,
        )

    def level_count(self) -> int:
        count = self.source.level_count()
        if count == INVALID_LEVEL:
            raise self.fail("level_count")
        return count

    def level_dimensions(self, level: int) -> Dimensions:
        width, height = self.source.level_dimensions(level)
        if width == -1 or height == -1:
            raise self.fail("level_dimensions", level=level)
        return Dimensions(width, height)

    def level_downsample(self, level: int) -> float:
        downsample = self.source.level_downsample(level)
        if downsample == INVALID_DOWNSAMPLE:
            raise self.fail("level_downsample", level=level)
        return downsample

    def native_levels(self) -> tuple[NativeLevel, ...]:
        """Read the full native level table."""
        return tuple(
            NativeLevel(
                index=level,
                dimensions=self.level_dimensions(level),
                downsample=self.level_downsample(level),
            )
            for level in range(self.level_count())
        )

    def best_level_for_downsample(self, downsample: float) -> int:
        level = self.source.best_level_for_downsample(downsample)
        if level == INVALID_LEVEL:
            raise self.fail("best_level_for_downsample")
        return level

    def read_region(
        self,
        buffer: NDArray[np.uint8],
        location: tuple[int, int],
        level: int,
        size: tuple[int, int],
    ) -> None:
        """Read a region into ``buffer`` and check the blank-pixel signal.

        The decoder clears the buffer on failure, so a black first pixel is
        the only in-band hint; it only counts as a failure when the error
        channel also holds a message (black tissue is legitimate).
        """
        self.source.read_region(
            buffer, location[0], location[1], level, size[0], size[1]
        )
        if not buffer[0, 0, :3].any() and self.source.last_error():
            raise self.fail(
                "read_region", level=level, location=location, size=size
            )

    def property_value(self, name: str) -> str | None:
        """Return a property, raising only when absence is due to a failure."""
        value = self.source.property_value(name)
        if value is None and self.source.last_error():
            raise self.fail("property_value")
        return value

    def close(self) -> None:
        self.source.close()
