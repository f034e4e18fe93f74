"""Models for air traffic state ingested from ADS-B sources."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from redwood.models.geo import Coordinate


class AircraftRecord(BaseModel):
    """Normalized state of one aircraft from a single provider batch."""

    icao24: str = Field(..., description="ICAO 24-bit address, lowercase hex")
    callsign: Optional[str] = Field(default=None, description="Flight callsign")
    origin_country: Optional[str] = Field(
        default=None, description="Country of registration"
    )
    position: Optional[Coordinate] = Field(
        default=None, description="Last known position, absent if not reported"
    )
    altitude_m: Optional[float] = Field(default=None, description="Altitude in meters")
    heading_deg: Optional[float] = Field(
        default=None, description="True track in degrees clockwise from north"
    )
    velocity_ms: Optional[float] = Field(
        default=None, description="Ground speed in meters per second"
    )
    vertical_rate_ms: Optional[float] = Field(
        default=None, description="Vertical rate in meters per second"
    )
    on_ground: bool = Field(default=False, description="Surface position report")

    # Filled from the local aircraft registry when available
    registration: Optional[str] = Field(default=None, description="Tail number")
    operator: Optional[str] = Field(default=None, description="Operating airline or owner")
    manufacturer: Optional[str] = Field(default=None, description="Airframe manufacturer")
    model: Optional[str] = Field(default=None, description="Airframe model")
    typecode: Optional[str] = Field(default=None, description="ICAO type designator")

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def display_name(self) -> str:
        """Callsign if broadcast, else registration, else the hex address."""

        return self.callsign or self.registration or self.icao24.upper()

    @property
    def is_enriched(self) -> bool:
        return self.registration is not None


class RankedAircraft(BaseModel):
    """An aircraft record with its distance and bearing from the reference."""

    aircraft: AircraftRecord
    distance_km: float = Field(..., ge=0.0, description="Great-circle distance in km")
    bearing_deg: float = Field(
        ..., ge=0.0, lt=360.0, description="Initial bearing from the reference"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def icao24(self) -> str:
        return self.aircraft.icao24


__all__ = ["AircraftRecord", "RankedAircraft"]
