"""Integration tests for the deep-zoom pyramid over real slide files.

Geometry and tile sizes are checked against openslide-python's own
DeepZoomGenerator, which implements the same pyramid model.
They are skipped if no test file is available.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import openslide
import pytest
from openslide.deepzoom import DeepZoomGenerator

from dzslide.core.observer import NullObserver
from dzslide.core.pyramid import open_pyramid
from dzslide.wsi.exceptions import AddressOutOfRangeError, SlideNotFoundError

pytestmark = pytest.mark.integration

TILE_STRIDE = 254


@pytest.fixture
def generator(wsi_test_file: Path) -> Iterator[DeepZoomGenerator]:
    with openslide.OpenSlide(str(wsi_test_file)) as slide:
        yield DeepZoomGenerator(slide, tile_size=TILE_STRIDE, overlap=1)


class TestPyramidRealFile:
    """Integration tests for PyramidHandle with real slide files."""

    def test_level_table_matches_deepzoom_generator(
        self, wsi_test_file: Path, generator: DeepZoomGenerator
    ) -> None:
        with open_pyramid(
            wsi_test_file, tile_stride=TILE_STRIDE, observer=NullObserver()
        ) as pyramid:
            assert pyramid.level_count == generator.level_count
            assert pyramid.level_dimensions == tuple(generator.level_dimensions)
            assert pyramid.level_tiles == tuple(generator.level_tiles)

    def test_tile_sizes_match_deepzoom_generator(
        self, wsi_test_file: Path, generator: DeepZoomGenerator
    ) -> None:
        with open_pyramid(
            wsi_test_file, tile_stride=TILE_STRIDE, observer=NullObserver()
        ) as pyramid:
            finest = pyramid.level_count - 1
            columns, rows = pyramid.level_tiles[finest]
            for column, row in {(0, 0), (columns - 1, rows - 1), (columns // 2, 0)}:
                tile = pyramid.get_tile_pixels(finest, row, column)
                expected = generator.get_tile(finest, (column, row))
                assert tile.size == expected.size

                location, level, size = generator.get_tile_coordinates(
                    finest, (column, row)
                )
                request = pyramid.get_tile_region(finest, row, column)
                assert request.location == location
                assert request.native_level == level
                assert request.size == size

    def test_coarsest_level_is_one_pixel(self, wsi_test_file: Path) -> None:
        with open_pyramid(wsi_test_file, observer=NullObserver()) as pyramid:
            tile = pyramid.get_tile_pixels(0, 0, 0)
            assert tile.size == (1, 1)
            assert tile.mode == "RGB"

    def test_finest_level_is_easy(self, wsi_test_file: Path) -> None:
        with open_pyramid(wsi_test_file, observer=NullObserver()) as pyramid:
            assert pyramid.level_count - 1 in pyramid.easy_levels()

    def test_metadata(self, wsi_test_file: Path) -> None:
        with open_pyramid(wsi_test_file, observer=NullObserver()) as pyramid:
            assert pyramid.vendor != ""
            assert pyramid.microns_per_pixel() >= 0.0
            assert "<Size" in pyramid.get_dzi()

    def test_out_of_range_tile(self, wsi_test_file: Path) -> None:
        with open_pyramid(wsi_test_file, observer=NullObserver()) as pyramid:
            with pytest.raises(AddressOutOfRangeError):
                pyramid.get_tile_pixels(pyramid.level_count, 0, 0)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SlideNotFoundError):
            open_pyramid(tmp_path / "missing.svs")
