"""Service-layer helpers for Redwood."""

from .acquirer import Acquirer, AcquirerState
from .config_writer import ConfigWriter
from .geo_resolver import GeoResolver
from .ranking import EARTH_RADIUS_KM, haversine_km, initial_bearing_deg, rank
from .registry import AircraftRegistry
from .snapshot_store import SharedSnapshot

__all__ = [
    "Acquirer",
    "AcquirerState",
    "AircraftRegistry",
    "ConfigWriter",
    "EARTH_RADIUS_KM",
    "GeoResolver",
    "SharedSnapshot",
    "haversine_km",
    "initial_bearing_deg",
    "rank",
]
