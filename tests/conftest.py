"""Shared test fixtures."""

import threading
from io import BytesIO

import httpx
import numpy as np
import pytest
from PIL import Image

from tilestitch.config import PipelineConfig, RetryPolicy
from tilestitch.models.region import BoundingBox
from tilestitch.models.tile import TileGrid
from tilestitch.services.storage_service import StorageLayout

TILE_SIZE = 64

# Solid colours for the 2x2 grid at zoom 2, keyed by (col, row)
QUAD_COLORS = {
    (0, 0): (255, 0, 0),
    (0, 1): (0, 0, 255),
    (1, 0): (0, 255, 0),
    (1, 1): (255, 255, 0),
}
DEFAULT_COLOR = (128, 128, 128)


def make_tile_bytes(color, size=TILE_SIZE) -> bytes:
    """Encode a solid-colour JPEG tile."""
    buf = BytesIO()
    Image.new("RGB", (size, size), color).save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def mean_color(image: Image.Image, box: tuple[int, int, int, int]) -> np.ndarray:
    """Average RGB colour of ``box`` (left, top, right, bottom)."""
    arr = np.asarray(image.convert("RGB").crop(box), dtype=np.float64)
    return arr.reshape(-1, 3).mean(axis=0)


def assert_color_close(actual, expected, tolerance=12):
    assert np.all(np.abs(np.asarray(actual) - np.asarray(expected)) <= tolerance), (
        f"colour {np.round(actual).tolist()} differs from {list(expected)}"
    )


class StubTileServer:
    """In-process tile server behind ``httpx.MockTransport``.

    ``failures`` maps (col, row) to either a status code / "error" that is
    returned on every request, or a list consumed one entry per request
    (``None`` entries succeed).
    """

    def __init__(self, colors=None, failures=None, tile_size=TILE_SIZE):
        self.colors = colors or {}
        self.failures = dict(failures or {})
        self.tile_size = tile_size
        self.requests: list[tuple[int, int, int]] = []
        self.urls: list[str] = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        *_, zoom, col, name = request.url.path.split("/")
        coord = (int(zoom), int(col), int(name.split(".")[0]))
        with self._lock:
            self.requests.append(coord)
            self.urls.append(str(request.url))
            outcome = self._next_outcome(coord[1:])

        if outcome == "error":
            raise httpx.ConnectError("connection refused", request=request)
        if outcome is not None:
            return httpx.Response(outcome)

        color = self.colors.get(coord[1:], DEFAULT_COLOR)
        return httpx.Response(
            200,
            content=make_tile_bytes(color, self.tile_size),
            headers={"Content-Type": "image/jpeg"},
        )

    def _next_outcome(self, key):
        planned = self.failures.get(key)
        if isinstance(planned, list):
            return planned.pop(0) if planned else None
        return planned

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def requested_columns(self) -> set[int]:
        return {col for _, col, _ in self.requests}


@pytest.fixture
def sample_bbox():
    """San Francisco bay region."""
    return BoundingBox(north=37.8012, south=37.688, east=-122.2, west=-122.6)


@pytest.fixture
def quad_bbox():
    """Bounding box producing a 2x2 tile grid (cols 0-1, rows 0-1) at zoom 2."""
    return BoundingBox(north=70.0, south=10.0, east=-100.0, west=-170.0)


@pytest.fixture
def quad_grid():
    return TileGrid(zoom=2, min_col=0, max_col=1, min_row=0, max_row=2)


@pytest.fixture
def wide_grid():
    """3 columns x 2 rows."""
    return TileGrid(zoom=3, min_col=2, max_col=4, min_row=1, max_row=3)


@pytest.fixture
def layout(tmp_path):
    return StorageLayout(tmp_path / "tiles", "map.jpg")


@pytest.fixture
def tile_server():
    return StubTileServer(colors=QUAD_COLORS)


@pytest.fixture
def no_retry():
    return RetryPolicy(max_attempts=1)


@pytest.fixture
def quad_config(tmp_path, quad_bbox):
    """Pipeline config for the 2x2 grid against the stub server."""
    return PipelineConfig(
        zoom=2,
        region=quad_bbox,
        base_url="http://tiles.test/base/",
        storage_root=tmp_path / "tiles",
        output_file="map.jpg",
        workers=2,
        retry=RetryPolicy(max_attempts=2, backoff_seconds=0),
    )


def write_solid_tiles(layout: StorageLayout, grid: TileGrid, colors=None, size=TILE_SIZE) -> None:
    """Write solid-colour tiles for every coordinate of ``grid``."""
    colors = colors or {}
    for coord in grid.coordinates():
        path = layout.tile_path(coord)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(make_tile_bytes(colors.get((coord.col, coord.row), DEFAULT_COLOR), size))


def assert_tile_colors(image: Image.Image, grid: TileGrid, colors, tile_size=TILE_SIZE) -> None:
    """Check every tile cell of a stitched ``image`` against its source colour."""
    assert image.size == (grid.column_count * tile_size, grid.row_count * tile_size)
    for coord in grid.coordinates():
        left = (coord.col - grid.min_col) * tile_size
        top = (coord.row - grid.min_row) * tile_size
        # Inset by a few pixels to stay clear of JPEG edge blending
        box = (left + 4, top + 4, left + tile_size - 4, top + tile_size - 4)
        expected = colors.get((coord.col, coord.row), DEFAULT_COLOR)
        assert_color_close(mean_color(image, box), expected)


@pytest.fixture
def tile_bytes():
    return make_tile_bytes


@pytest.fixture
def solid_tiles():
    return write_solid_tiles


@pytest.fixture
def check_tile_colors():
    return assert_tile_colors


@pytest.fixture
def quad_colors():
    return dict(QUAD_COLORS)


@pytest.fixture
def make_tile_server():
    """Factory for stub servers with injected failures."""

    def _make(failures=None, colors=None):
        return StubTileServer(colors=colors or QUAD_COLORS, failures=failures)

    return _make
