"""On-disk layout and directory provisioning for a tile grid."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from ..exceptions import FilesystemError, PipelineCancelled
from ..models.tile import TILE_EXTENSION, TileCoordinate, TileGrid

logger = logging.getLogger(__name__)


class StorageLayout:
    """Deterministic local paths for tiles, column strips and the composite.

    Layout under ``root``::

        {root}/{zoom}/{col}/{row}.jpg   tile
        {root}/{zoom}/{col}.jpg         column strip
        {root}/{output_file}            composite
    """

    def __init__(self, root: Path, output_file: str):
        self.root = Path(root)
        self.output_file = output_file

    def zoom_dir(self, zoom: int) -> Path:
        return self.root / str(zoom)

    def column_dir(self, zoom: int, col: int) -> Path:
        return self.zoom_dir(zoom) / str(col)

    def tile_path(self, coord: TileCoordinate) -> Path:
        return self.column_dir(coord.zoom, coord.col) / f"{coord.row}.{TILE_EXTENSION}"

    def strip_path(self, zoom: int, col: int) -> Path:
        return self.zoom_dir(zoom) / f"{col}.{TILE_EXTENSION}"

    @property
    def output_path(self) -> Path:
        return self.root / self.output_file


def ensure_directory(path: Path) -> None:
    """Create ``path`` and any missing parents; existing directories are fine."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create directory {path}: {e}", path=path) from e


class DirectoryProvisioner:
    """Ensures one storage directory exists per grid column."""

    def __init__(self, layout: StorageLayout, workers: int = 4):
        self.layout = layout
        self.workers = max(1, workers)

    def provision(
        self,
        grid: TileGrid,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[Path]:
        """
        Create ``{root}/{zoom}/{col}`` for every column of the grid.

        Columns are independent and created over a bounded worker pool. The
        stage succeeds or fails as a whole: after the first failure no
        further directories are created and the error is raised.

        Args:
            grid: Tile grid to provision
            cancel_event: Optional event checked before each directory

        Returns:
            Column directories in column order

        Raises:
            FilesystemError: If any directory cannot be created
            PipelineCancelled: If cancel_event is set
        """
        abort = threading.Event()
        paths = [self.layout.column_dir(grid.zoom, col) for col in grid.columns]

        def _ensure(path: Path) -> bool:
            if abort.is_set():
                return False
            if cancel_event is not None and cancel_event.is_set():
                abort.set()
                raise PipelineCancelled("Cancelled during directory provisioning", path=path)
            try:
                ensure_directory(path)
            except BaseException:
                abort.set()
                raise
            return True

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(_ensure, path) for path in paths]
            try:
                # Report the first failure in column order
                for future in futures:
                    error = future.exception()
                    if error is not None:
                        raise error
            except BaseException:
                abort.set()
                raise

        logger.info("Provisioned %d column directories under %s", len(paths), self.layout.zoom_dir(grid.zoom))
        return paths
