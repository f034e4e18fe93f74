"""Exception taxonomy for Redwood."""

from __future__ import annotations

from enum import Enum


class RedwoodError(Exception):
    """Base class for all Redwood errors."""


class ConfigReason(str, Enum):
    NO_REFERENCE = "no_reference"
    INVALID = "invalid"
    UNREADABLE = "unreadable"


class ConfigError(RedwoodError):
    """Fatal startup error; raised before the terminal changes mode."""

    def __init__(self, message: str, reason: ConfigReason = ConfigReason.INVALID):
        super().__init__(message)
        self.reason = reason


class FetchError(RedwoodError):
    """Raised when the flight-data provider cannot deliver a batch."""


class LocationLookupError(RedwoodError):
    """Raised when automatic geolocation fails."""


class RenderError(RedwoodError):
    """Raised when a frame cannot be presented to the terminal."""


__all__ = [
    "ConfigError",
    "ConfigReason",
    "FetchError",
    "LocationLookupError",
    "RedwoodError",
    "RenderError",
]
