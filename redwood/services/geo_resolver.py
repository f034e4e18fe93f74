"""Resolve the reference coordinate the dashboard is centred on."""

from __future__ import annotations

import logging
from typing import Protocol

from redwood.config import TrackerConfig
from redwood.errors import ConfigError, ConfigReason, LocationLookupError
from redwood.models.geo import Coordinate

logger = logging.getLogger("redwood.geo_resolver")


class Locator(Protocol):
    async def lookup_location(self) -> Coordinate: ...


class GeoResolver:
    """Resolve the reference point once and cache it.

    With ``auto_geo`` the locator is asked first and the manual coordinate is
    the fallback. Without it the manual coordinate is used directly. No
    reference at all raises ``ConfigError``.
    """

    def __init__(self, config: TrackerConfig, locator: Locator | None = None) -> None:
        self.config = config
        self.locator = locator
        self._resolved: Coordinate | None = None

    @property
    def resolved(self) -> Coordinate | None:
        return self._resolved

    async def resolve(self) -> Coordinate:
        if self._resolved is not None:
            return self._resolved

        coordinate: Coordinate | None = None
        source = "manual"
        if self.config.auto_geo and self.locator is not None:
            try:
                coordinate = await self.locator.lookup_location()
                source = "geolocation"
            except LocationLookupError as exc:
                logger.warning(
                    "Geolocation failed (%s); falling back to manual coordinate", exc
                )

        if coordinate is None:
            coordinate = self.config.manual_coordinate

        if coordinate is None:
            raise ConfigError(
                "No reference coordinate: geolocation unavailable and no manual "
                "coordinate configured",
                reason=ConfigReason.NO_REFERENCE,
            )

        logger.info(
            "Reference coordinate resolved via %s: %s",
            source,
            coordinate,
            extra={"event": "reference_resolved"},
        )
        self._resolved = coordinate
        return coordinate


__all__ = ["GeoResolver", "Locator"]
