"""Data models for tile retrieval and stitching."""

from .region import BoundingBox, MAX_MERCATOR_LAT
from .tile import TILE_EXTENSION, TILE_SERVERS, TileCoordinate, TileGrid, TileType

__all__ = [
    "BoundingBox",
    "MAX_MERCATOR_LAT",
    "TILE_EXTENSION",
    "TILE_SERVERS",
    "TileCoordinate",
    "TileGrid",
    "TileType",
]
