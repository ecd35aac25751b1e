"""Deep Zoom Image (DZI) helpers for tile serving layers.

Renders the ``.dzi`` XML descriptor, parses the ``level/col_row.format``
tile path convention and encodes tiles for transport.
"""

from __future__ import annotations

import re
from io import BytesIO
from xml.etree.ElementTree import Element, SubElement, tostring

from PIL import Image

from dzslide.wsi.exceptions import AddressOutOfRangeError
from dzslide.wsi.types import Dimensions, TileAddress

DZI_NAMESPACE = "http://schemas.microsoft.com/deepzoom/2008"

# Tile formats accepted in tile paths, mapped to Pillow format names
TILE_FORMATS: dict[str, str] = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
}

_TILE_PATH = re.compile(
    r"^(?P<level>\d+)/(?P<column>\d+)_(?P<row>\d+)\.(?P<fmt>\w+)$"
)


def dzi_xml(size: Dimensions, tile_stride: int, overlap: int, fmt: str) -> str:
    """Render the DZI descriptor for a pyramid.

    Args:
        size: Full-resolution (width, height).
        tile_stride: Tile edge before overlap (the DZI ``TileSize``).
        overlap: Per-side overlap.
        fmt: Tile format extension, e.g. "jpeg".

    Returns:
        XML document as a string.
    """
    image = Element(
        "Image",
        TileSize=str(tile_stride),
        Overlap=str(overlap),
        Format=fmt,
        xmlns=DZI_NAMESPACE,
    )
    SubElement(image, "Size", Width=str(size.width), Height=str(size.height))
    body = tostring(image, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>{body}'


def parse_tile_path(path: str) -> tuple[TileAddress, str]:
    """Parse a Deep Zoom tile path such as ``"12/3_4.jpeg"``.

    The path names the column before the row.

    Returns:
        (TileAddress, format extension lowercased).

    Raises:
        AddressOutOfRangeError: If the path is malformed or the format is
            not supported.
    """
    match = _TILE_PATH.match(path.strip("/"))
    if match is None:
        raise AddressOutOfRangeError(f"Malformed tile path {path!r}")
    fmt = match["fmt"].lower()
    if fmt not in TILE_FORMATS:
        raise AddressOutOfRangeError(f"Unsupported tile format {fmt!r}")
    address = TileAddress(
        level=int(match["level"]),
        row=int(match["row"]),
        column=int(match["column"]),
    )
    return address, fmt


def encode_tile(image: Image.Image, fmt: str = "jpeg", quality: int = 75) -> bytes:
    """Encode a tile image for transport.

    Args:
        image: Tile pixels.
        fmt: "jpeg", "jpg" or "png".
        quality: JPEG quality 1-100 (ignored for PNG).

    Raises:
        ValueError: If the format or quality is invalid.
    """
    pil_format = TILE_FORMATS.get(fmt.lower())
    if pil_format is None:
        raise ValueError(f"Unsupported tile format {fmt!r}")
    if not 1 <= quality <= 100:
        raise ValueError(f"quality must be 1-100, got {quality}")

    buffer = BytesIO()
    if pil_format == "JPEG":
        image.convert("RGB").save(buffer, format=pil_format, quality=quality)
    else:
        image.save(buffer, format=pil_format)
    return buffer.getvalue()
