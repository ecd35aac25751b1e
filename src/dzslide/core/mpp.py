"""Microns-per-pixel lookup with a locale fallback.

Some decoder builds format the MPP property with the host locale's decimal
mark, so "0.25" can arrive as "0,25". The value is parsed with a period
first; when that fails or lands outside a plausible physical range, it is
reparsed with the comma as the decimal mark.

0.0 is returned for "unknown" and must never be treated as a measurement.
"""

from __future__ import annotations

import math

from dzslide.core.observer import NullObserver, PyramidObserver
from dzslide.wsi.checked import CheckedSlide
from dzslide.wsi.source import PROPERTY_NAME_MPP_X, PROPERTY_NAME_MPP_Y

UNKNOWN_MPP = 0.0
DEFAULT_MPP_MIN = 1e-10
DEFAULT_MPP_MAX = 1000.0


def _parse_period_decimal(text: str) -> float:
    try:
        value = float(text.strip())
    except ValueError:
        return UNKNOWN_MPP
    return value if math.isfinite(value) else UNKNOWN_MPP


def _parse_comma_decimal(text: str) -> float:
    # Comma is the decimal mark; periods are thousands separators
    try:
        value = float(text.strip().replace(".", "").replace(",", "."))
    except ValueError:
        return UNKNOWN_MPP
    return value if math.isfinite(value) else UNKNOWN_MPP


def parse_mpp(
    text: str | None,
    minimum: float = DEFAULT_MPP_MIN,
    maximum: float = DEFAULT_MPP_MAX,
) -> tuple[float, bool]:
    """Parse an MPP property string.

    Args:
        text: Raw property value, or None when absent.
        minimum: Smallest plausible value.
        maximum: Largest plausible value.

    Returns:
        (value, used_fallback). value is 0.0 when unknown.
    """
    if text is None:
        return UNKNOWN_MPP, False
    value = _parse_period_decimal(text)
    if minimum <= value <= maximum:
        return value, False
    return _parse_comma_decimal(text), True


class MppResolver:
    """Reads the slide's pixel pitch from decoder properties."""

    __slots__ = ("_maximum", "_minimum", "_observer", "_slide")

    def __init__(
        self,
        slide: CheckedSlide,
        minimum: float = DEFAULT_MPP_MIN,
        maximum: float = DEFAULT_MPP_MAX,
        observer: PyramidObserver | None = None,
    ) -> None:
        self._slide = slide
        self._minimum = minimum
        self._maximum = maximum
        self._observer = observer or NullObserver()

    def microns_per_pixel(self, prop: str = PROPERTY_NAME_MPP_X) -> float:
        """Return microns per pixel along one axis, or 0.0 if unknown.

        Args:
            prop: Property to read; defaults to the horizontal pitch.

        Raises:
            DecoderError: If the property is missing because the decoder
                is in an error state.
        """
        text = self._slide.property_value(prop)
        value, used_fallback = parse_mpp(text, self._minimum, self._maximum)
        if used_fallback:
            self._observer.on_event("mpp_fallback", raw=text, value=value)
        return value

    def microns_per_pixel_y(self) -> float:
        """Return the vertical pixel pitch, or 0.0 if unknown."""
        return self.microns_per_pixel(PROPERTY_NAME_MPP_Y)
