"""Tile retrieval from a slippy-map tile server."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import httpx

from ..config import RetryPolicy
from ..exceptions import FilesystemError, NetworkError, PipelineCancelled
from ..models.tile import TileCoordinate, TileGrid
from .storage_service import StorageLayout

logger = logging.getLogger(__name__)

# Statuses worth retrying; any other non-success status fails at once
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class FetchProgress:
    """Progress tracking for tile retrieval."""

    total_tiles: int
    completed_tiles: int = 0
    last_tile: Optional[TileCoordinate] = None
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


@dataclass
class FetchReport:
    """Result of retrieving a full tile grid."""

    grid: TileGrid
    tiles: dict[TileCoordinate, Path] = field(default_factory=dict)
    requests: int = 0
    elapsed_time: float = 0.0


def build_http_client(workers: int, timeout: float, user_agent: str) -> httpx.Client:
    """HTTP client with a connection pool sized to the worker count."""
    limits = httpx.Limits(max_connections=workers, max_keepalive_connections=workers)
    return httpx.Client(
        headers={"User-Agent": user_agent},
        timeout=httpx.Timeout(timeout),
        limits=limits,
        follow_redirects=True,
    )


class TileFetcher:
    """Retrieves tiles and writes each to its deterministic local path."""

    def __init__(
        self,
        client: httpx.Client,
        layout: StorageLayout,
        base_url: str,
        retry: Optional[RetryPolicy] = None,
        workers: int = 4,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize tile fetcher.

        Args:
            client: HTTP client used for every request
            layout: Local storage layout
            base_url: Tile server base URL
            retry: Retry policy for transient failures
            workers: Maximum concurrent requests within a column
            sleep: Backoff delay function
        """
        self.client = client
        self.layout = layout
        self.base_url = base_url
        self.retry = retry or RetryPolicy()
        self.workers = max(1, workers)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._requests = 0

    def fetch_all(
        self,
        grid: TileGrid,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[FetchProgress], None]] = None,
    ) -> FetchReport:
        """
        Retrieve every tile of the grid, column by column.

        Tiles within a column are requested over a bounded worker pool. The
        first failure stops all remaining requests in the column and no later
        column is started.

        Args:
            grid: Tile grid to retrieve
            cancel_event: Optional event checked before every request
            progress_callback: Optional callback after every written tile

        Returns:
            FetchReport mapping each coordinate to its local file

        Raises:
            NetworkError: If a tile cannot be retrieved
            FilesystemError: If a tile cannot be written
            PipelineCancelled: If cancel_event is set
        """
        report = FetchReport(grid=grid)
        progress = FetchProgress(total_tiles=grid.tile_count)
        abort = threading.Event()
        self._requests = 0

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            try:
                for col in grid.columns:
                    if cancel_event is not None and cancel_event.is_set():
                        raise PipelineCancelled(f"Cancelled before column {col}")

                    coords = grid.column(col)
                    futures = [
                        executor.submit(self._fetch_guarded, coord, abort, cancel_event)
                        for coord in coords
                    ]

                    # Results are placed by coordinate; report the first error in row order
                    for coord, future in zip(coords, futures):
                        error = future.exception()
                        if error is not None:
                            raise error
                        path = future.result()
                        if path is None:
                            continue
                        report.tiles[coord] = path
                        progress.completed_tiles += 1
                        progress.last_tile = coord
                        if progress_callback:
                            progress_callback(progress)

                    logger.info("Finished column %d (%d tiles)", col, len(coords))
            except BaseException:
                # Queued requests see the flag and return before the pool drains
                abort.set()
                raise

        report.requests = self._requests
        report.elapsed_time = progress.elapsed_time
        logger.info(
            "Fetched %d tiles with %d requests in %.1fs",
            len(report.tiles),
            report.requests,
            report.elapsed_time,
        )
        return report

    def _fetch_guarded(
        self,
        coord: TileCoordinate,
        abort: threading.Event,
        cancel_event: Optional[threading.Event],
    ) -> Optional[Path]:
        """Fetch one tile unless the run has already failed."""
        if abort.is_set():
            return None
        try:
            return self.fetch_tile(coord, cancel_event)
        except BaseException:
            abort.set()
            raise

    def fetch_tile(
        self,
        coord: TileCoordinate,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """
        Retrieve one tile and write it to its local path.

        Args:
            coord: Tile to retrieve
            cancel_event: Optional event checked before every attempt

        Returns:
            Path of the written tile
        """
        content = self._download(coord, cancel_event)

        path = self.layout.tile_path(coord)
        try:
            path.write_bytes(content)
        except OSError as e:
            raise FilesystemError(f"Cannot write tile {coord} to {path}: {e}", path=path, coordinate=coord) from e

        logger.debug("Saved %s -> %s", coord, path)
        return path

    def _download(self, coord: TileCoordinate, cancel_event: Optional[threading.Event]) -> bytes:
        url = coord.url(self.base_url)
        last_error: Optional[NetworkError] = None

        for attempt in range(self.retry.max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelled(f"Cancelled before fetching {coord}", coordinate=coord)

            with self._lock:
                self._requests += 1

            try:
                response = self.client.get(url)
            except httpx.HTTPError as e:
                last_error = NetworkError(
                    f"Request for tile {coord} failed: {e}",
                    url=url,
                    coordinate=coord,
                    attempts=attempt + 1,
                )
                last_error.__cause__ = e
            else:
                if response.is_success:
                    return response.content
                last_error = NetworkError(
                    f"HTTP {response.status_code} for tile {coord} ({url})",
                    url=url,
                    coordinate=coord,
                    status_code=response.status_code,
                    attempts=attempt + 1,
                )
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    break

            if attempt < self.retry.max_attempts - 1:
                delay = self.retry.delay(attempt)
                logger.warning(
                    "Attempt %d/%d for %s failed (%s), retrying in %.1fs",
                    attempt + 1,
                    self.retry.max_attempts,
                    coord,
                    last_error,
                    delay,
                )
                self._sleep(delay)

        raise last_error
