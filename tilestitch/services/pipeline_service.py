"""Tile pipeline orchestration service.

Runs the stages in dependency order:
1. Map the bounding box onto a tile grid
2. Create one storage directory per grid column
3. Fetch every tile of the grid
4. Stitch tiles into column strips, then strips into the composite
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from ..config import PipelineConfig
from ..models.tile import TileGrid
from .coordinate_service import CoordinateMapper
from .stitch_service import GridStitcher, StitchResult
from .storage_service import DirectoryProvisioner, StorageLayout
from .tile_service import FetchProgress, FetchReport, TileFetcher, build_http_client

logger = logging.getLogger(__name__)


@dataclass
class PipelineProgress:
    """Progress update for one pipeline stage."""

    stage: str  # "grid", "directories", "tiles", "columns" or "combine"
    completed: int
    total: int


@dataclass
class PipelineResult:
    """Outcome of a completed pipeline run."""

    grid: TileGrid
    fetch_report: Optional[FetchReport] = None
    stitch_result: Optional[StitchResult] = None
    elapsed_time: float = 0.0


class PipelineService:
    """Orchestrates grid mapping, provisioning, fetching and stitching."""

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize pipeline service.

        Args:
            config: Immutable run configuration
            client: Optional pre-configured HTTP client (left open on close)
            sleep: Backoff delay function for retries
        """
        self.config = config
        self._owns_client = client is None
        self._client = client or build_http_client(config.workers, config.timeout, config.user_agent)

        self.layout = StorageLayout(config.storage_root, config.output_file)
        self.mapper = CoordinateMapper(config.zoom)
        self.provisioner = DirectoryProvisioner(self.layout, workers=config.workers)
        self.fetcher = TileFetcher(
            self._client,
            self.layout,
            config.resolved_base_url,
            retry=config.retry,
            workers=config.workers,
            sleep=sleep,
        )
        self.stitcher = GridStitcher(self.layout)

    def compute_grid(self) -> TileGrid:
        """Tile grid covering the configured region."""
        return self.mapper.compute_grid(self.config.region)

    def run(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[PipelineProgress], None]] = None,
        skip_stitch: bool = False,
    ) -> PipelineResult:
        """
        Run the full pipeline.

        Every stage is fail-fast; the first error aborts the run and nothing
        already written is removed.

        Args:
            cancel_event: Optional event checked between steps
            progress_callback: Optional callback for stage progress
            skip_stitch: Stop after all tiles are on disk

        Returns:
            PipelineResult for the run
        """
        start_time = time.time()

        def report(stage: str, completed: int, total: int) -> None:
            if progress_callback:
                progress_callback(PipelineProgress(stage=stage, completed=completed, total=total))

        grid = self.compute_grid()
        report("grid", 1, 1)

        self.provisioner.provision(grid, cancel_event=cancel_event)
        report("directories", grid.column_count, grid.column_count)

        def on_tile(progress: FetchProgress) -> None:
            report("tiles", progress.completed_tiles, progress.total_tiles)

        logger.info("Fetching %d tiles from %s", grid.tile_count, self.config.resolved_base_url)
        fetch_report = self.fetcher.fetch_all(grid, cancel_event=cancel_event, progress_callback=on_tile)

        result = PipelineResult(grid=grid, fetch_report=fetch_report)
        if not skip_stitch:
            result.stitch_result = self.stitcher.stitch(grid, cancel_event=cancel_event, progress_callback=report)

        result.elapsed_time = time.time() - start_time
        logger.info("Pipeline finished in %.1fs", result.elapsed_time)
        return result

    def stitch_only(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[PipelineProgress], None]] = None,
    ) -> PipelineResult:
        """Stitch tiles already downloaded for the configured grid."""
        start_time = time.time()
        grid = self.compute_grid()

        def report(stage: str, completed: int, total: int) -> None:
            if progress_callback:
                progress_callback(PipelineProgress(stage=stage, completed=completed, total=total))

        result = PipelineResult(grid=grid)
        result.stitch_result = self.stitcher.stitch(grid, cancel_event=cancel_event, progress_callback=report)
        result.elapsed_time = time.time() - start_time
        return result

    def close(self):
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
