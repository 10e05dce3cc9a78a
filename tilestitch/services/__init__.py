"""Tile pipeline services."""

from .coordinate_service import CoordinateMapper
from .storage_service import DirectoryProvisioner, StorageLayout
from .tile_service import TileFetcher
from .stitch_service import GridStitcher
from .pipeline_service import PipelineService

__all__ = [
    "CoordinateMapper",
    "DirectoryProvisioner",
    "StorageLayout",
    "TileFetcher",
    "GridStitcher",
    "PipelineService",
]
