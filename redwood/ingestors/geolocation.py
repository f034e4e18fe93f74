"""Approximate location of this host via IP geolocation."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from redwood.config import settings
from redwood.errors import LocationLookupError
from redwood.models.geo import Coordinate

logger = logging.getLogger("redwood.ingestors.geolocation")


class IpApiLocator:
    """Look up the public IP's coordinates using ip-api.com."""

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.geolocation_url
        self.timeout = timeout or settings.geolocation_timeout
        self.transport = transport

    async def lookup_location(self) -> Coordinate:
        logger.info("Requesting IP geolocation from %s", self.url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LocationLookupError("geolocation request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise LocationLookupError(
                f"geolocation service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise LocationLookupError(f"geolocation service unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise LocationLookupError("geolocation response is not JSON") from exc

        if not isinstance(payload, dict):
            raise LocationLookupError("unexpected geolocation response")
        if payload.get("status", "success") != "success":
            raise LocationLookupError(
                f"geolocation failed: {payload.get('message', 'unknown error')}"
            )

        try:
            coordinate = Coordinate(latitude=payload.get("lat"), longitude=payload.get("lon"))
        except ValidationError as exc:
            raise LocationLookupError(
                f"geolocation returned unusable coordinates: "
                f"{payload.get('lat')!r}, {payload.get('lon')!r}"
            ) from exc

        logger.info(
            "Geolocation resolved to %s (%s, %s)",
            coordinate,
            payload.get("city", "?"),
            payload.get("regionName", "?"),
        )
        return coordinate


__all__ = ["IpApiLocator"]
