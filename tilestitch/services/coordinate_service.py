"""Bounding box to tile grid mapping."""

import logging

from ..exceptions import CoordinateError
from ..models.region import BoundingBox
from ..models.tile import TileGrid
from ..utils.geo_utils import col_to_lon, lat_to_row, lon_to_col, row_to_lat, tiles_per_axis

logger = logging.getLogger(__name__)


class CoordinateMapper:
    """Maps a geographic bounding box onto the tile pyramid at one zoom level."""

    def __init__(self, zoom: int):
        if zoom < 0:
            raise CoordinateError(f"Zoom level must be non-negative, got {zoom}")
        self.zoom = zoom

    def compute_grid(self, bbox: BoundingBox) -> TileGrid:
        """
        Compute the tile index range covering a bounding box.

        The grid extends one column east and one row south of the tiles
        containing the box edges so that unaligned boxes are fully covered.

        Args:
            bbox: Region to cover

        Returns:
            TileGrid for the region

        Raises:
            CoordinateError: If any index falls outside the pyramid
        """
        grid = TileGrid(
            zoom=self.zoom,
            min_col=lon_to_col(bbox.west, self.zoom),
            max_col=lon_to_col(bbox.east, self.zoom) + 1,
            min_row=lat_to_row(bbox.north, self.zoom),
            max_row=lat_to_row(bbox.south, self.zoom) + 1,
        )
        self._validate(grid)

        logger.info(
            "Tile grid at zoom %d: cols %d-%d, rows %d-%d (%d tiles)",
            grid.zoom,
            grid.min_col,
            grid.max_col,
            grid.min_row,
            grid.max_row - 1,
            grid.tile_count,
        )
        return grid

    def _validate(self, grid: TileGrid) -> None:
        limit = tiles_per_axis(self.zoom)
        for name in ("min_col", "max_col", "min_row", "max_row"):
            value = getattr(grid, name)
            if not 0 <= value < limit:
                raise CoordinateError(
                    f"{name}={value} is outside the tile range [0, {limit}) at zoom {self.zoom}"
                )
        if grid.min_col > grid.max_col or grid.min_row > grid.max_row:
            raise CoordinateError(f"Empty tile grid: {grid}")

    def covered_extent(self, grid: TileGrid) -> tuple[float, float, float, float]:
        """Geographic extent of the tiles retrieved for ``grid``.

        Returns:
            (north, south, east, west) in degrees
        """
        return (
            row_to_lat(grid.min_row, grid.zoom),
            row_to_lat(grid.max_row, grid.zoom),
            col_to_lon(grid.max_col + 1, grid.zoom),
            col_to_lon(grid.min_col, grid.zoom),
        )
