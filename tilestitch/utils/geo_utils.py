"""Slippy-map tile coordinate conversions.

Spherical-Mercator tiling as used by OpenStreetMap style tile servers:
https://wiki.openstreetmap.org/wiki/Slippy_map_tilenames
"""

import math


def tiles_per_axis(zoom: int) -> int:
    """Number of tiles along each axis at ``zoom``."""
    return 2 ** zoom


def lon_to_col(lon: float, zoom: int) -> int:
    """Convert longitude to tile column index."""
    return math.floor((lon + 180) / 360 * tiles_per_axis(zoom))


def lat_to_row(lat: float, zoom: int) -> int:
    """Convert latitude to tile row index (row 0 is the northern edge)."""
    lat_rad = lat * math.pi / 180
    mercator_y = math.log(math.tan(lat_rad) + 1 / math.cos(lat_rad))
    return math.floor((1 - mercator_y / math.pi) / 2 * tiles_per_axis(zoom))


def col_to_lon(col: int, zoom: int) -> float:
    """Longitude of the western edge of a tile column."""
    return col / tiles_per_axis(zoom) * 360 - 180


def row_to_lat(row: int, zoom: int) -> float:
    """Latitude of the northern edge of a tile row."""
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * row / tiles_per_axis(zoom))))
    return math.degrees(lat_rad)
