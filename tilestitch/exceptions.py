"""Error types raised by the tile pipeline."""

from pathlib import Path
from typing import Optional

from .models.tile import TileCoordinate


class TileStitchError(Exception):
    """Base class for pipeline failures.

    Carries the coordinate and/or path involved so callers can report
    exactly where a stage stopped.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Path] = None,
        coordinate: Optional[TileCoordinate] = None,
    ):
        super().__init__(message)
        self.path = path
        self.coordinate = coordinate


class CoordinateError(TileStitchError):
    """Invalid bounding box or zoom level for the tile pyramid."""


class FilesystemError(TileStitchError):
    """Directory creation or tile write failure."""


class NetworkError(TileStitchError):
    """Tile fetch failure (transport error or non-success status)."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        coordinate: Optional[TileCoordinate] = None,
        status_code: Optional[int] = None,
        attempts: int = 1,
    ):
        super().__init__(message, coordinate=coordinate)
        self.url = url
        self.status_code = status_code
        self.attempts = attempts


class ImageCompositionError(TileStitchError):
    """Column strip or composite could not be read, built or written."""


class PipelineCancelled(TileStitchError):
    """The run was cancelled between steps."""
