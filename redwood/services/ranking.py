"""Great-circle filtering and ranking of aircraft around a reference point."""

from __future__ import annotations

import math
from typing import Iterable

from redwood.models.air_traffic import AircraftRecord, RankedAircraft
from redwood.models.geo import Coordinate

# Mean Earth radius (IUGG)
EARTH_RADIUS_KM = 6371.0088


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points in kilometres."""

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # Rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def initial_bearing_deg(origin: Coordinate, target: Coordinate) -> float:
    """Forward azimuth from ``origin`` to ``target`` in [0, 360)."""

    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lon = math.radians(target.longitude - origin.longitude)

    x = math.sin(d_lon) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
    bearing = math.degrees(math.atan2(x, y)) % 360.0
    if bearing >= 360.0:
        bearing = 0.0
    return bearing


def rank(
    reference: Coordinate,
    radius_km: float,
    records: Iterable[AircraftRecord],
) -> list[RankedAircraft]:
    """Return in-range aircraft sorted by distance, closest first.

    Records without a position are dropped, as is anything farther than
    ``radius_km``. Equal distances are ordered by ``icao24`` so the output does
    not depend on the order of ``records``. Missing altitude or heading never
    affects inclusion.
    """

    ranked: list[RankedAircraft] = []
    for record in records:
        position = record.position
        if position is None:
            continue

        distance = haversine_km(reference, position)
        if math.isnan(distance) or distance > radius_km:
            continue

        ranked.append(
            RankedAircraft(
                aircraft=record,
                distance_km=distance,
                bearing_deg=initial_bearing_deg(reference, position),
            )
        )

    ranked.sort(key=lambda item: (item.distance_km, item.aircraft.icao24))
    return ranked


__all__ = ["EARTH_RADIUS_KM", "haversine_km", "initial_bearing_deg", "rank"]
