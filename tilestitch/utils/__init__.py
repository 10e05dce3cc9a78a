"""Utility functions for tile retrieval and stitching."""

from .geo_utils import (
    col_to_lon,
    lat_to_row,
    lon_to_col,
    row_to_lat,
    tiles_per_axis,
)
from .image_utils import (
    append_images,
    load_image,
    save_image,
)

__all__ = [
    "col_to_lon",
    "lat_to_row",
    "lon_to_col",
    "row_to_lat",
    "tiles_per_axis",
    "append_images",
    "load_image",
    "save_image",
]
