"""Tile grid and tile server models."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator

# Fixed raster format for tiles, strips and the composite
TILE_EXTENSION = "jpg"


class TileType(str, Enum):
    """Named tile-server templates."""

    TERRAIN = "terrain"
    TERRAIN_BACKGROUND = "terrain-background"
    TONER = "toner"
    WATERCOLOR = "watercolor"

    @property
    def base_url(self) -> str:
        """Base URL of the tile server for this type."""
        return TILE_SERVERS[self]


TILE_SERVERS = {
    TileType.TERRAIN: "http://c.tile.stamen.com/terrain/",
    TileType.TERRAIN_BACKGROUND: "http://c.tile.stamen.com/terrain-background/",
    TileType.TONER: "http://c.tile.stamen.com/toner/",
    TileType.WATERCOLOR: "http://c.tile.stamen.com/watercolor/",
}


@dataclass(frozen=True)
class TileCoordinate:
    """One remote tile and one local file."""

    zoom: int
    col: int
    row: int

    def url(self, base_url: str) -> str:
        """Remote location of this tile under ``base_url``."""
        return f"{base_url.rstrip('/')}/{self.zoom}/{self.col}/{self.row}.{TILE_EXTENSION}"

    def __str__(self) -> str:
        return f"z{self.zoom}/{self.col}/{self.row}"


@dataclass(frozen=True)
class TileGrid:
    """Tile index range covering a bounding box at one zoom level.

    Columns run inclusively from ``min_col`` to ``max_col``. Rows run from
    ``min_row`` up to, but not including, ``max_row``.
    """

    zoom: int
    min_col: int
    max_col: int
    min_row: int
    max_row: int

    @property
    def columns(self) -> range:
        return range(self.min_col, self.max_col + 1)

    @property
    def rows(self) -> range:
        return range(self.min_row, self.max_row)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def tile_count(self) -> int:
        return self.column_count * self.row_count

    def column(self, col: int) -> list[TileCoordinate]:
        """Coordinates of one column, north to south."""
        return [TileCoordinate(self.zoom, col, row) for row in self.rows]

    def coordinates(self) -> Iterator[TileCoordinate]:
        """All coordinates in column-major order."""
        for col in self.columns:
            yield from self.column(col)
