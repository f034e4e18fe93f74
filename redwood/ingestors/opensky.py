"""ADS-B state vectors from the OpenSky Network REST API."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from redwood.config import settings
from redwood.errors import FetchError
from redwood.models.air_traffic import AircraftRecord
from redwood.models.geo import Coordinate

logger = logging.getLogger("redwood.ingestors.opensky")

KM_PER_DEGREE_LAT = 111.32


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _as_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _deltas(reference: Coordinate, radius_km: float) -> tuple[float, float]:
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    lon_delta = radius_km / max(
        KM_PER_DEGREE_LAT * math.cos(math.radians(reference.latitude)), 0.0001
    )
    return lat_delta, lon_delta


def bounding_box(reference: Coordinate, radius_km: float) -> dict[str, float]:
    """Query parameters for a box enclosing the detection circle.

    The box is clamped to the valid latitude and longitude ranges, so it
    stops at the antimeridian. ``bounding_boxes`` adds the wrapped part.
    """

    lat_delta, lon_delta = _deltas(reference, radius_km)
    return {
        "lamin": max(reference.latitude - lat_delta, -90.0),
        "lomin": max(reference.longitude - lon_delta, -180.0),
        "lamax": min(reference.latitude + lat_delta, 90.0),
        "lomax": min(reference.longitude + lon_delta, 180.0),
    }


def bounding_boxes(reference: Coordinate, radius_km: float) -> list[dict[str, float]]:
    """Boxes covering the detection circle, split at ±180° longitude."""

    lat_delta, lon_delta = _deltas(reference, radius_km)
    box = bounding_box(reference, radius_km)
    if lon_delta >= 180.0:
        # Near a pole the circle spans every meridian
        return [{**box, "lomin": -180.0, "lomax": 180.0}]

    boxes = [box]
    west = reference.longitude - lon_delta
    east = reference.longitude + lon_delta
    if west < -180.0:
        boxes.append({**box, "lomin": west + 360.0, "lomax": 180.0})
    if east > 180.0:
        boxes.append({**box, "lomin": -180.0, "lomax": east - 360.0})
    return boxes


def normalize_state(entry: Any) -> Optional[AircraftRecord]:
    """Turn one OpenSky state vector into an ``AircraftRecord``.

    Returns ``None`` for entries that are not state vectors or have no ICAO
    address. A missing or out-of-range position yields a record without a
    position rather than being dropped here.
    """

    if not isinstance(entry, (list, tuple)) or len(entry) < 7:
        return None

    icao = _as_text(entry[0])
    if icao is None:
        return None

    position = None
    lon = _as_float(entry[5])
    lat = _as_float(entry[6])
    if lat is not None and lon is not None:
        try:
            position = Coordinate(latitude=lat, longitude=lon)
        except ValidationError:
            logger.debug("Discarding invalid position for %s: %s, %s", icao, lat, lon)

    geo_altitude = _as_float(entry[13]) if len(entry) > 13 else None
    baro_altitude = _as_float(entry[7]) if len(entry) > 7 else None

    return AircraftRecord(
        icao24=icao.lower(),
        callsign=_as_text(entry[1]),
        origin_country=_as_text(entry[2]),
        position=position,
        altitude_m=geo_altitude if geo_altitude is not None else baro_altitude,
        on_ground=bool(entry[8]) if len(entry) > 8 else False,
        velocity_ms=_as_float(entry[9]) if len(entry) > 9 else None,
        heading_deg=_as_float(entry[10]) if len(entry) > 10 else None,
        vertical_rate_ms=_as_float(entry[11]) if len(entry) > 11 else None,
    )


class OpenSkyProvider:
    """Fetch aircraft state vectors around a point from OpenSky."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.opensky_base_url
        self.timeout = timeout or settings.opensky_timeout
        self.transport = transport

    async def fetch_states(
        self, reference: Coordinate, radius_km: float
    ) -> list[AircraftRecord]:
        records: list[AircraftRecord] = []
        seen: set[str] = set()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                for params in bounding_boxes(reference, radius_km):
                    for record in await self._fetch_box(client, params):
                        if record.icao24 not in seen:
                            seen.add(record.icao24)
                            records.append(record)
        except httpx.TimeoutException as exc:
            logger.warning("OpenSky request timed out: %s", exc)
            raise FetchError("provider request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("OpenSky request failed: %s", exc)
            raise FetchError(f"provider unreachable: {exc}") from exc

        logger.debug("Fetched %s aircraft states", len(records))
        return records

    async def _fetch_box(
        self, client: httpx.AsyncClient, params: dict[str, float]
    ) -> list[AircraftRecord]:
        response = await client.get(self.base_url, params=params)

        if response.status_code == 429:
            logger.warning("OpenSky rate limit encountered: %s", response.text)
            raise FetchError("provider rate limit reached (HTTP 429)")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "OpenSky returned HTTP %s: %s", exc.response.status_code, exc
            )
            raise FetchError(f"provider returned HTTP {exc.response.status_code}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Failed to parse OpenSky JSON response: %s", exc)
            raise FetchError("malformed provider response") from exc

        if not isinstance(payload, dict):
            raise FetchError("malformed provider response: expected an object")

        # OpenSky sends "states": null when the box is empty
        raw_states = payload.get("states") or []
        if not isinstance(raw_states, list):
            raise FetchError("malformed provider response: states is not a list")

        records: list[AircraftRecord] = []
        for entry in raw_states:
            record = normalize_state(entry)
            if record:
                records.append(record)
        return records


__all__ = ["OpenSkyProvider", "bounding_box", "bounding_boxes", "normalize_state"]
