"""Geographic region model."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Latitude limit of the spherical-Mercator tile pyramid
MAX_MERCATOR_LAT = 85.0511


class BoundingBox(BaseModel):
    """Geographic bounding box of the map region."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    north: float = Field(
        ...,
        ge=-MAX_MERCATOR_LAT,
        le=MAX_MERCATOR_LAT,
        description="Top latitude",
    )
    south: float = Field(
        ...,
        ge=-MAX_MERCATOR_LAT,
        le=MAX_MERCATOR_LAT,
        description="Bottom latitude",
    )
    east: float = Field(..., ge=-180, le=180, description="Right longitude")
    west: float = Field(..., ge=-180, le=180, description="Left longitude")

    @model_validator(mode="after")
    def check_orientation(self) -> "BoundingBox":
        if self.north <= self.south:
            raise ValueError(f"north ({self.north}) must be greater than south ({self.south})")
        if self.east <= self.west:
            # Regions crossing the antimeridian are not supported
            raise ValueError(f"east ({self.east}) must be greater than west ({self.west})")
        return self

    @property
    def center(self) -> tuple[float, float]:
        """Return center point (lat, lon)."""
        return ((self.north + self.south) / 2, (self.east + self.west) / 2)

    @property
    def width_degrees(self) -> float:
        """Width in degrees longitude."""
        return self.east - self.west

    @property
    def height_degrees(self) -> float:
        """Height in degrees latitude."""
        return self.north - self.south

    def to_tuple(self) -> tuple[float, float, float, float]:
        """Return as (north, south, east, west) tuple."""
        return (self.north, self.south, self.east, self.west)
