"""Geographic primitives."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A WGS84 point in decimal degrees."""

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    longitude: float = Field(
        ..., ge=-180.0, le=180.0, description="Longitude in decimal degrees"
    )

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    def __str__(self) -> str:
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


__all__ = ["Coordinate"]
