"""Two-phase stitching of retrieved tiles into one composite image."""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from ..exceptions import ImageCompositionError, PipelineCancelled
from ..models.tile import TileGrid
from ..utils.image_utils import append_images, load_image, save_image
from .storage_service import StorageLayout

logger = logging.getLogger(__name__)


@dataclass
class StitchResult:
    """Result of stitching a tile grid."""

    output_path: Path
    size: tuple[int, int]
    strip_paths: list[Path] = field(default_factory=list)


class GridStitcher:
    """Composites tiles into column strips, then strips into the final image.

    Rows are stacked top-to-bottom (north at the top) within each column and
    column strips are placed left-to-right (west at the left).
    """

    def __init__(self, layout: StorageLayout, quality: int = 95):
        self.layout = layout
        self.quality = quality

    def stitch(
        self,
        grid: TileGrid,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ) -> StitchResult:
        """
        Build every column strip, then combine them into the composite.

        Args:
            grid: Tile grid whose tiles are all on disk
            cancel_event: Optional event checked between columns
            progress_callback: Optional callback (phase, completed, total)

        Returns:
            StitchResult with the composite path and pixel size

        Raises:
            ImageCompositionError: If any tile, strip or output cannot be read or written
        """
        strip_paths = []
        for i, col in enumerate(grid.columns):
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelled(f"Cancelled before stitching column {col}")
            strip_paths.append(self.stitch_column(grid, col))
            if progress_callback:
                progress_callback("columns", i + 1, grid.column_count)

        logger.info("Built %d column strips", len(strip_paths))

        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled("Cancelled before combining column strips")
        composite = self.combine_columns(grid)
        if progress_callback:
            progress_callback("combine", 1, 1)

        return StitchResult(
            output_path=self.layout.output_path,
            size=composite.size,
            strip_paths=strip_paths,
        )

    def stitch_column(self, grid: TileGrid, col: int) -> Path:
        """Stack one column's tiles north to south and write the strip."""
        tiles = [self._load(self.layout.tile_path(coord)) for coord in grid.column(col)]
        strip = append_images(tiles, vertical=True)

        strip_path = self.layout.strip_path(grid.zoom, col)
        self._save(strip, strip_path)
        logger.debug("Column %d strip %dx%d -> %s", col, strip.width, strip.height, strip_path)
        return strip_path

    def combine_columns(self, grid: TileGrid) -> Image.Image:
        """Place the column strips west to east and write the composite."""
        strips = [self._load(self.layout.strip_path(grid.zoom, col)) for col in grid.columns]
        composite = append_images(strips, vertical=False)

        self._save(composite, self.layout.output_path)
        logger.info(
            "Composite %dx%d written to %s",
            composite.width,
            composite.height,
            self.layout.output_path,
        )
        return composite

    def _load(self, path: Path) -> Image.Image:
        try:
            return load_image(path)
        except (OSError, ValueError) as e:
            raise ImageCompositionError(f"Cannot read image {path}: {e}", path=path) from e

    def _save(self, image: Image.Image, path: Path) -> None:
        try:
            save_image(image, path, quality=self.quality)
        except (OSError, ValueError) as e:
            raise ImageCompositionError(f"Cannot write image {path}: {e}", path=path) from e
