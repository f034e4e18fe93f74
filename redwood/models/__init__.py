"""Pydantic models for Redwood."""

from .air_traffic import AircraftRecord, RankedAircraft
from .geo import Coordinate
from .snapshot import Outcome, Snapshot

__all__ = [
    "AircraftRecord",
    "Coordinate",
    "Outcome",
    "RankedAircraft",
    "Snapshot",
]
