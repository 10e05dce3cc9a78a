"""Configuration management for the tile pipeline."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import __version__
from .models.region import BoundingBox
from .models.tile import TileType

MIN_ZOOM = 0
MAX_ZOOM = 19

DEFAULT_USER_AGENT = f"tilestitch/{__version__}"


class RetryPolicy(BaseModel):
    """Retry settings for transient tile fetch failures."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, description="Attempts per tile, including the first")
    backoff_seconds: float = Field(default=1.0, ge=0, description="Delay before the first retry")
    backoff_factor: float = Field(default=2.0, ge=1, description="Multiplier applied per retry")

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (0-based)."""
        return self.backoff_seconds * self.backoff_factor ** attempt


class PipelineConfig(BaseModel):
    """Immutable settings for one tile retrieval and stitching run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    zoom: int = Field(default=14, ge=MIN_ZOOM, le=MAX_ZOOM, description="Tile zoom level")
    region: BoundingBox = Field(
        default=BoundingBox(north=37.8012, south=37.688, east=-122.2, west=-122.6),
        description="Region to retrieve",
    )
    tile_type: TileType = Field(default=TileType.TERRAIN, description="Named tile server")
    base_url: Optional[str] = Field(
        default=None,
        description="Tile server base URL, overrides tile_type",
    )

    # Storage
    storage_root: Path = Field(default=Path("terrain"), description="Local download directory")
    output_file: str = Field(default="terrain.jpg", description="Composite file name under storage_root")

    # Transport
    workers: int = Field(default=4, ge=1, le=64, description="Concurrent tile requests")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)

    @field_validator("output_file")
    @classmethod
    def validate_output_file(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError("output_file must be a plain file name")
        if Path(v).suffix.lower() not in (".jpg", ".jpeg"):
            raise ValueError("output_file must be a .jpg or .jpeg file")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v

    @property
    def resolved_base_url(self) -> str:
        """Base URL tiles are requested from."""
        return self.base_url or self.tile_type.base_url

    @property
    def zoom_directory(self) -> Path:
        """Directory holding the tiles and strips for the configured zoom."""
        return self.storage_root / str(self.zoom)

    @property
    def output_path(self) -> Path:
        """Path of the final composite image."""
        return self.storage_root / self.output_file

    @classmethod
    def from_yaml(cls, path: Path) -> "PipelineConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        # An empty file means all defaults; any other non-mapping fails validation
        return cls.model_validate(data if data is not None else {})

    def to_yaml(self, path: Path) -> None:
        """Save configuration to a YAML file."""
        data = self.model_dump(mode="json")
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "PipelineConfig":
        """Load configuration from an optional YAML file and the environment."""
        config = cls.from_yaml(path) if path is not None else cls()

        overrides: dict = {}
        if "TILESTITCH_STORAGE_ROOT" in os.environ:
            overrides["storage_root"] = os.environ["TILESTITCH_STORAGE_ROOT"]
        if "TILESTITCH_TILE_TYPE" in os.environ:
            overrides["tile_type"] = os.environ["TILESTITCH_TILE_TYPE"]
        if "TILESTITCH_WORKERS" in os.environ:
            overrides["workers"] = os.environ["TILESTITCH_WORKERS"]

        return config.with_overrides(**overrides) if overrides else config

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Return a validated copy with the given fields replaced.

        Region edges may be given individually as ``north``, ``south``,
        ``east`` and ``west``; ``None`` values are ignored.
        """
        overrides = {k: v for k, v in overrides.items() if v is not None}
        edges = {k: overrides.pop(k) for k in ("north", "south", "east", "west") if k in overrides}
        if "max_attempts" in overrides:
            overrides["retry"] = {**self.retry.model_dump(), "max_attempts": overrides.pop("max_attempts")}

        data = self.model_dump()
        if edges:
            data["region"] = {**data["region"], **edges}
        data.update(overrides)
        return type(self).model_validate(data)
