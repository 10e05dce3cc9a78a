"""Tests for CoordinateMapper."""

import pytest

from tilestitch.exceptions import CoordinateError
from tilestitch.models.region import BoundingBox
from tilestitch.services.coordinate_service import CoordinateMapper


class TestComputeGrid:
    """Test bounding box to grid mapping."""

    def test_quad_box_is_two_by_two(self, quad_bbox):
        grid = CoordinateMapper(2).compute_grid(quad_bbox)
        assert (grid.min_col, grid.max_col, grid.min_row, grid.max_row) == (0, 1, 0, 2)
        assert grid.column_count == 2
        assert grid.row_count == 2

    def test_overscan_adds_one_column_and_row(self):
        # Box inside a single tile still yields a 2x1 grid
        bbox = BoundingBox(north=60.0, south=50.0, east=-120.0, west=-130.0)
        grid = CoordinateMapper(2).compute_grid(bbox)
        assert grid.max_col == grid.min_col + 1
        assert grid.max_row == grid.min_row + 1

    @pytest.mark.parametrize(
        "bbox,zoom",
        [
            (BoundingBox(north=37.8012, south=37.688, east=-122.2, west=-122.6), 14),
            (BoundingBox(north=51.6, south=51.4, east=0.1, west=-0.3), 10),
            (BoundingBox(north=-33.8, south=-34.0, east=151.3, west=151.1), 12),
            (BoundingBox(north=10.0, south=-10.0, east=10.0, west=-10.0), 3),
        ],
    )
    def test_grid_invariants(self, bbox, zoom):
        grid = CoordinateMapper(zoom).compute_grid(bbox)
        limit = 2 ** zoom
        assert grid.min_col <= grid.max_col
        assert grid.min_row <= grid.max_row
        for value in (grid.min_col, grid.max_col, grid.min_row, grid.max_row):
            assert 0 <= value < limit

    def test_sample_region_size(self, sample_bbox):
        grid = CoordinateMapper(14).compute_grid(sample_bbox)
        # 0.4 degrees of longitude is ~18 tiles wide at zoom 14
        assert 18 <= grid.column_count <= 21
        assert 6 <= grid.row_count <= 9


class TestValidation:
    """Test rejection of grids outside the pyramid."""

    def test_negative_zoom(self):
        with pytest.raises(CoordinateError):
            CoordinateMapper(-1)

    def test_east_edge_in_last_column(self):
        bbox = BoundingBox(north=10.0, south=5.0, east=170.0, west=10.0)
        with pytest.raises(CoordinateError, match="max_col"):
            CoordinateMapper(1).compute_grid(bbox)

    def test_south_edge_in_last_row(self):
        bbox = BoundingBox(north=-10.0, south=-80.0, east=-100.0, west=-110.0)
        with pytest.raises(CoordinateError, match="max_row"):
            CoordinateMapper(1).compute_grid(bbox)

    def test_zoom_zero_always_overflows(self, sample_bbox):
        with pytest.raises(CoordinateError):
            CoordinateMapper(0).compute_grid(sample_bbox)


class TestCoveredExtent:
    """Test geographic extent of a grid."""

    def test_extent_contains_region(self, sample_bbox):
        mapper = CoordinateMapper(14)
        north, south, east, west = mapper.covered_extent(mapper.compute_grid(sample_bbox))
        assert north >= sample_bbox.north
        assert south <= sample_bbox.south
        assert east >= sample_bbox.east
        assert west <= sample_bbox.west

    def test_quad_extent(self, quad_bbox):
        mapper = CoordinateMapper(2)
        north, south, east, west = mapper.covered_extent(mapper.compute_grid(quad_bbox))
        assert north == pytest.approx(85.0511, abs=1e-3)
        assert south == pytest.approx(0.0, abs=1e-9)
        assert west == pytest.approx(-180.0)
        assert east == pytest.approx(0.0)
