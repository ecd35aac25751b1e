"""Tile pixel extraction and resampling.

Reads the native region described by a RegionRequest into a freshly
allocated buffer and, when the native read does not already have the
deep-zoom tile size, resizes it with LANCZOS resampling.

Boundary Behavior:
    Unscanned slide areas come back fully transparent. They are composited
    over a solid background colour (white by default) so tiles are always
    opaque RGB.
"""

from __future__ import annotations

import numpy as np
from PIL import Image

from dzslide.core.observer import NullObserver, PyramidObserver
from dzslide.wsi.checked import CheckedSlide
from dzslide.wsi.exceptions import DecoderError
from dzslide.wsi.types import RegionRequest

# Non-black marker written to the first pixel before each read. A decoder
# failure clears the buffer, turning this pixel black.
_READ_MARKER = (240, 248, 255, 255)

DEFAULT_BACKGROUND = (255, 255, 255)


class TileExtractor:
    """Fetches tile pixels for resolved region requests.

    No caching and no disk writes: each call allocates one buffer and
    returns a new image.

    Example:
        >>> extractor = TileExtractor(checked_slide)
        >>> tile = extractor.extract(translator.translate(address))
        >>> tile.size == tuple(request.tile_size)
        True
    """

    __slots__ = ("_background", "_observer", "_slide")

    def __init__(
        self,
        slide: CheckedSlide,
        background: tuple[int, int, int] = DEFAULT_BACKGROUND,
        observer: PyramidObserver | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            slide: Checked decoder boundary for the open slide.
            background: RGB fill for transparent pixels.
            observer: Receives ``tile_resampled`` and ``tile_read_failed`` events.
        """
        self._slide = slide
        self._background = background
        self._observer = observer or NullObserver()

    def extract(self, request: RegionRequest) -> Image.Image:
        """Read and size the pixels for one tile.

        Args:
            request: Resolved native read (see TileAddressTranslator).

        Returns:
            RGB image of exactly ``request.tile_size``.

        Raises:
            DecoderError: If the decoder reports a failed read.
        """
        buffer = np.zeros((request.height, request.width, 4), dtype=np.uint8)
        buffer[0, 0] = _READ_MARKER
        try:
            self._slide.read_region(
                buffer, request.location, request.native_level, request.size
            )
        except DecoderError as e:
            self._observer.on_event(
                "tile_read_failed",
                native_level=request.native_level,
                location=request.location,
                size=tuple(request.size),
                error=e.decoder_message,
            )
            raise

        tile = self._flatten(Image.fromarray(buffer))
        if request.needs_resample:
            self._observer.on_event(
                "tile_resampled",
                native_level=request.native_level,
                source_size=tuple(request.size),
                tile_size=tuple(request.tile_size),
            )
            tile = tile.resize(
                tuple(request.tile_size), resample=Image.Resampling.LANCZOS
            )
        return tile

    def _flatten(self, rgba: Image.Image) -> Image.Image:
        """Composite an RGBA region over the background colour."""
        tile = Image.new("RGB", rgba.size, self._background)
        tile.paste(rgba, None, rgba)
        return tile
