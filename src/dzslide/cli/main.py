"""dzslide CLI - inspect slides as Deep Zoom pyramids and export tiles."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from dzslide import __version__
from dzslide.config import settings
from dzslide.core.pyramid import PyramidHandle, open_pyramid
from dzslide.dzi import encode_tile
from dzslide.utils.logging import (
    configure_logging,
    get_logger,
    set_correlation_context,
)
from dzslide.wsi.exceptions import PyramidError

app = typer.Typer(
    name="dzslide",
    help="dzslide: whole-slide images as Deep Zoom pyramids",
    add_completion=False,
)


class TileFormat(str, Enum):
    """Tile encoding format."""

    jpeg = "jpeg"
    png = "png"


SlideArgument = Annotated[
    Path,
    typer.Argument(
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="Path to slide file (.svs, .ndpi, .mrxs, .tiff, ...)",
    ),
]
StrideOption = Annotated[
    int | None,
    typer.Option("--tile-stride", "-t", min=1, help="Tile edge before overlap"),
]
VerboseOption = Annotated[
    int, typer.Option("--verbose", "-v", count=True, help="Increase verbosity")
]


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show version information."""
    if json_output:
        typer.echo(json.dumps({"version": __version__}))
    else:
        typer.echo(f"dzslide {__version__}")


@app.command()
def info(
    slide: SlideArgument,
    tile_stride: StrideOption = None,
    verbose: VerboseOption = 0,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show the deep-zoom pyramid derived from a slide."""
    _configure_logging(verbose)
    logger = get_logger(__name__)
    set_correlation_context(slide=str(slide))

    try:
        with open_pyramid(slide, tile_stride=tile_stride) as pyramid:
            summary = _summarize(pyramid)
    except (PyramidError, ValueError) as e:
        logger.error("Failed to open slide", error=str(e))
        _fail(e, json_output)

    if json_output:
        typer.echo(json.dumps(summary, indent=2))
        return

    width, height = summary["full_resolution"]
    typer.echo(f"Slide: {slide}")
    typer.echo(f"Vendor: {summary['vendor']}")
    typer.echo(f"Full resolution: {width}x{height}")
    typer.echo(f"Deep-zoom levels: {summary['level_count']}")
    typer.echo(f"Easy levels: {summary['easy_levels']}")
    mpp = summary["mpp"]
    typer.echo(f"Microns per pixel: {mpp if mpp else 'unknown'}")
    for level in summary["levels"]:
        typer.echo(
            f"  level {level['index']:>2}: {level['width']}x{level['height']} px, "
            f"{level['columns']}x{level['rows']} tiles, "
            f"native level {level['native_level']}"
        )


@app.command()
def tile(  # noqa: PLR0913
    slide: SlideArgument,
    level: Annotated[int, typer.Argument(help="Deep-zoom level (0 = coarsest)")],
    column: Annotated[int, typer.Argument(help="Tile column")],
    row: Annotated[int, typer.Argument(help="Tile row")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output image path")],
    fmt: Annotated[
        TileFormat | None, typer.Option("--format", "-f", help="Tile format")
    ] = None,
    quality: Annotated[
        int | None, typer.Option("--quality", "-q", help="JPEG quality 1-100")
    ] = None,
    tile_stride: StrideOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Extract one deep-zoom tile and write it to a file."""
    _configure_logging(verbose)
    logger = get_logger(__name__)
    set_correlation_context(slide=str(slide), request_id=f"{level}/{column}_{row}")

    tile_format = fmt.value if fmt is not None else settings.TILE_FORMAT
    jpeg_quality = quality if quality is not None else settings.JPEG_QUALITY
    try:
        with open_pyramid(slide, tile_stride=tile_stride) as pyramid:
            image = pyramid.get_tile_pixels(level, row, column)
        data = encode_tile(image, tile_format, jpeg_quality)
    except (PyramidError, ValueError) as e:
        logger.error("Tile extraction failed", error=str(e))
        _fail(e, json_output=False)

    output.write_bytes(data)
    logger.info("Tile written", path=str(output), size=image.size)
    typer.echo(f"Wrote {image.size[0]}x{image.size[1]} tile to {output}")


@app.command()
def dzi(
    slide: SlideArgument,
    fmt: Annotated[
        TileFormat | None, typer.Option("--format", "-f", help="Tile format")
    ] = None,
    tile_stride: StrideOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Print the .dzi descriptor for a slide."""
    _configure_logging(verbose)
    logger = get_logger(__name__)
    set_correlation_context(slide=str(slide))

    try:
        with open_pyramid(slide, tile_stride=tile_stride) as pyramid:
            descriptor = pyramid.get_dzi(fmt.value if fmt is not None else None)
    except (PyramidError, ValueError) as e:
        logger.error("Failed to open slide", error=str(e))
        _fail(e, json_output=False)

    typer.echo(descriptor)


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(verbose: int) -> None:
    """Map -v counts onto log levels."""
    if verbose >= 2:  # noqa: PLR2004
        level = "DEBUG"
    elif verbose == 1:
        level = "INFO"
    else:
        level = "WARNING"
    configure_logging(level=level)


def _fail(error: Exception, json_output: bool) -> NoReturn:
    if json_output:
        typer.echo(json.dumps({"error": str(error)}))
    else:
        typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1) from None


def _summarize(pyramid: PyramidHandle) -> dict[str, Any]:
    width, height = pyramid.full_resolution_size()
    return {
        "path": str(pyramid.path),
        "vendor": pyramid.vendor,
        "full_resolution": [width, height],
        "level_count": pyramid.level_count,
        "tile_stride": pyramid.tile_stride,
        "overlap": pyramid.overlap,
        "easy_levels": list(pyramid.easy_levels()),
        "mpp": pyramid.microns_per_pixel(),
        "levels": [
            {
                "index": level.index,
                "width": level.dimensions.width,
                "height": level.dimensions.height,
                "columns": level.tiles.width,
                "rows": level.tiles.height,
                "native_level": level.native_level,
                "downsample": level.total_downsample,
            }
            for level in pyramid.levels
        ],
    }


if __name__ == "__main__":
    app()
