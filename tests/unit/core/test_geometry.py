"""Unit tests for the deep-zoom pyramid geometry resolver.

Tests PyramidGeometry including:
- Level dimension halving and ordering
- Power-of-two total downsamples
- Native level choice with the best-level tolerance
- Easy level detection
- Decoder failures during resolution
- Property-based invariant verification
"""

from __future__ import annotations

import math

import pytest
from fakes import FakeSlideSource, RecordingObserver, power_pyramid
from hypothesis import given, settings
from hypothesis import strategies as st

from dzslide.core.geometry import (
    PyramidGeometry,
    build_deep_zoom_dimensions,
    build_total_downsamples,
    tile_grid,
)
from dzslide.wsi.checked import CheckedSlide
from dzslide.wsi.exceptions import DecoderError, GeometryError
from dzslide.wsi.types import Dimensions


def _resolve(source: FakeSlideSource, tile_stride: int = 510) -> PyramidGeometry:
    return PyramidGeometry.resolve(CheckedSlide(source, "/slides/a.svs"), tile_stride)


# --- Level dimensions ---


class TestBuildDeepZoomDimensions:
    """Tests for the halving sequence."""

    def test_standard_slide_has_thirteen_levels(self) -> None:
        dims = build_deep_zoom_dimensions(Dimensions(4096, 3072))
        assert len(dims) == 13
        assert dims[-1] == (4096, 3072)
        assert dims[-2] == (2048, 1536)
        assert dims[0] == (1, 1)

    def test_odd_sizes_round_up(self) -> None:
        dims = build_deep_zoom_dimensions(Dimensions(5, 3))
        assert dims == ((1, 1), (2, 1), (3, 2), (5, 3))

    def test_single_pixel_slide_has_one_level(self) -> None:
        assert build_deep_zoom_dimensions(Dimensions(1, 1)) == ((1, 1),)

    def test_thin_slide_halves_axes_independently(self) -> None:
        dims = build_deep_zoom_dimensions(Dimensions(1, 1000))
        assert len(dims) == 11
        assert all(width == 1 for width, _ in dims)
        assert [height for _, height in dims][-3:] == [250, 500, 1000]

    def test_rejects_empty_dimensions(self) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            build_deep_zoom_dimensions(Dimensions(0, 10))

    @given(
        width=st.integers(min_value=1, max_value=2**20),
        height=st.integers(min_value=1, max_value=2**20),
    )
    @settings(max_examples=200)
    def test_level_count_brackets_longest_side(self, width: int, height: int) -> None:
        dims = build_deep_zoom_dimensions(Dimensions(width, height))
        count = len(dims)
        longest = max(width, height)
        assert 2 ** (count - 1) >= longest
        if count > 1:
            assert 2 ** (count - 2) < longest
        assert count == math.ceil(math.log2(longest)) + 1

    @given(
        width=st.integers(min_value=1, max_value=2**20),
        height=st.integers(min_value=1, max_value=2**20),
    )
    @settings(max_examples=200)
    def test_each_level_halves_the_next(self, width: int, height: int) -> None:
        dims = build_deep_zoom_dimensions(Dimensions(width, height))
        assert dims[-1] == (width, height)
        assert dims[0] == (1, 1)
        for coarse, fine in zip(dims, dims[1:], strict=False):
            assert coarse.width == max(1, math.ceil(fine.width / 2))
            assert coarse.height == max(1, math.ceil(fine.height / 2))


class TestBuildTotalDownsamples:
    """Tests for power-of-two downsamples."""

    def test_downsamples_are_powers_of_two(self) -> None:
        assert build_total_downsamples(4) == (8, 4, 2, 1)

    def test_single_level(self) -> None:
        assert build_total_downsamples(1) == (1,)


class TestTileGrid:
    """Tests for tile grid sizes."""

    def test_partial_tiles_round_up(self) -> None:
        assert tile_grid(Dimensions(4096, 3072), 510) == (9, 7)

    def test_single_tile(self) -> None:
        assert tile_grid(Dimensions(1, 1), 510) == (1, 1)


# --- Resolution against a slide ---


class TestPyramidGeometryResolve:
    """Tests for PyramidGeometry.resolve."""

    def test_standard_slide_levels(self, standard_source: FakeSlideSource) -> None:
        geometry = _resolve(standard_source)

        assert geometry.level_count == 13
        assert geometry.full_resolution == (4096, 3072)
        assert geometry.level_dimensions[12] == (4096, 3072)
        assert geometry.level_dimensions[0] == (1, 1)
        assert geometry.level_tiles[0] == (1, 1)
        assert geometry.level_tiles[12] == (9, 7)
        assert geometry.tile_stride == 510

    def test_total_downsamples_are_exact(
        self, standard_source: FakeSlideSource
    ) -> None:
        geometry = _resolve(standard_source)
        totals = [level.total_downsample for level in geometry.levels]
        assert totals == [2 ** (12 - index) for index in range(13)]

    def test_native_level_choice(self, standard_source: FakeSlideSource) -> None:
        """Native downsamples 1, 4, 16: levels 12-11 read native 0, 10-9 native 1."""
        geometry = _resolve(standard_source)
        native = [level.native_level for level in geometry.levels]

        assert native[12] == 0
        assert native[11] == 0
        assert native[10] == 1
        assert native[9] == 1
        assert native[8] == 2
        assert native[:8] == [2] * 8

    def test_residual_downsamples(self, standard_source: FakeSlideSource) -> None:
        geometry = _resolve(standard_source)
        residuals = [level.residual_downsample for level in geometry.levels]

        assert residuals[12] == 1.0
        assert residuals[11] == 2.0
        assert residuals[10] == 1.0
        assert residuals[8] == 1.0
        assert residuals[0] == 256.0

    def test_easy_levels(self, standard_source: FakeSlideSource) -> None:
        geometry = _resolve(standard_source)
        assert geometry.easy_levels == (12,)

    def test_levels_aligned_with_native_level_are_not_easy(
        self, standard_source: FakeSlideSource
    ) -> None:
        """Levels 10 and 8 read native levels 1:1 but are 4x and 16x downsampled."""
        geometry = _resolve(standard_source)

        for index in (8, 10):
            level = geometry.level(index)
            assert level.residual_downsample == 1.0
            assert level.total_downsample > 1
            assert index not in geometry.easy_levels

    def test_best_level_query_uses_tolerance(
        self, standard_source: FakeSlideSource
    ) -> None:
        _resolve(standard_source)
        assert standard_source.best_level_queries[-1] == pytest.approx(1.01)
        assert standard_source.best_level_queries[0] == pytest.approx(4096 * 1.01)

    def test_tolerance_keeps_slightly_irregular_native_level(self) -> None:
        """A native downsample of 4.0016 still serves the 4x deep-zoom level."""
        source = FakeSlideSource(
            [((4096, 3072), 1.0), ((1023, 767), 4.0016), ((255, 191), 16.0627)]
        )
        geometry = _resolve(source)

        level = geometry.level(10)
        assert level.total_downsample == 4
        assert level.native_level == 1
        assert level.residual_downsample == pytest.approx(4 / 4.0016)
        assert geometry.easy_levels == (12,)

    def test_irregular_native_pyramid_is_not_easy(self) -> None:
        """Native downsample 3 never matches a power of two exactly."""
        source = FakeSlideSource(power_pyramid(1000, 800, (1.0, 3.0)))
        geometry = _resolve(source, tile_stride=254)

        assert geometry.easy_levels == (geometry.level_count - 1,)
        assert geometry.level(geometry.level_count - 3).native_level == 1
        assert geometry.level(geometry.level_count - 3).residual_downsample == (
            pytest.approx(4 / 3)
        )

    def test_single_pixel_slide(self) -> None:
        source = FakeSlideSource([((1, 1), 1.0)])
        geometry = _resolve(source)

        assert geometry.level_count == 1
        assert geometry.easy_levels == (0,)
        assert geometry.tile_count == 1

    def test_finest_level_always_easy(self) -> None:
        source = FakeSlideSource(power_pyramid(70000, 40000, (1.0, 4.0, 16.0, 32.0)))
        geometry = _resolve(source)
        assert geometry.level_count - 1 in geometry.easy_levels

    @given(
        width=st.integers(min_value=1, max_value=100_000),
        height=st.integers(min_value=1, max_value=100_000),
        downsamples=st.lists(
            st.floats(min_value=1.5, max_value=64.0), min_size=0, max_size=4
        ).map(lambda extra: (1.0, *sorted(extra))),
    )
    @settings(max_examples=150, deadline=None)
    def test_easy_levels_stay_near_full_resolution(
        self, width: int, height: int, downsamples: tuple[float, ...]
    ) -> None:
        source = FakeSlideSource(power_pyramid(width, height, downsamples))
        geometry = _resolve(source)

        assert geometry.level_count - 1 in geometry.easy_levels
        for index in geometry.easy_levels:
            total = geometry.level(index).total_downsample
            assert 0.99 <= total <= 1.01

    def test_emits_geometry_resolved_event(
        self, standard_source: FakeSlideSource, recorder: RecordingObserver
    ) -> None:
        PyramidGeometry.resolve(
            CheckedSlide(standard_source), 510, observer=recorder
        )
        assert recorder.names() == ["geometry_resolved"]
        _, fields = recorder.events[0]
        assert fields["levels"] == 13
        assert fields["easy_levels"] == [12]


class TestPyramidGeometryFailures:
    """Tests for decoder failures during resolution."""

    def test_best_level_failure_raises_geometry_error(
        self, standard_source: FakeSlideSource
    ) -> None:
        standard_source.fail_best_level = True

        with pytest.raises(GeometryError, match="cannot resolve downsample") as info:
            _resolve(standard_source)

        assert info.value.downsample == 4096
        assert isinstance(info.value.__cause__, DecoderError)

    def test_level_count_failure_with_empty_channel(
        self, standard_source: FakeSlideSource
    ) -> None:
        standard_source.fail_level_count = True

        with pytest.raises(DecoderError, match="error channel is empty") as info:
            _resolve(standard_source)

        assert info.value.decoder_message is None
        assert info.value.operation == "level_count"

    def test_level_count_failure_with_decoder_message(
        self, standard_source: FakeSlideSource
    ) -> None:
        standard_source.error = "Unsupported TIFF compression"

        with pytest.raises(DecoderError, match="Unsupported TIFF compression"):
            _resolve(standard_source)

    def test_out_of_range_native_level_rejected(self) -> None:
        class _BadSource(FakeSlideSource):
            def best_level_for_downsample(self, downsample: float) -> int:
                return 7

        with pytest.raises(GeometryError, match="returned level 7"):
            _resolve(_BadSource([((10, 10), 1.0)]))


class TestPyramidGeometryAccessors:
    """Tests for level lookups."""

    def test_level_out_of_range(self, standard_source: FakeSlideSource) -> None:
        geometry = _resolve(standard_source)
        with pytest.raises(IndexError):
            geometry.level(13)
        with pytest.raises(IndexError):
            geometry.native_level(3)

    def test_tile_count_sums_grids(self, standard_source: FakeSlideSource) -> None:
        geometry = _resolve(standard_source)
        assert geometry.tile_count == sum(c * r for c, r in geometry.level_tiles)

    def test_invalid_stride_rejected(self, standard_source: FakeSlideSource) -> None:
        with pytest.raises(ValueError, match="tile_stride"):
            _resolve(standard_source, tile_stride=0)
