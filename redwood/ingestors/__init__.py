"""External data sources for Redwood."""

from .geolocation import IpApiLocator
from .opensky import OpenSkyProvider

__all__ = ["IpApiLocator", "OpenSkyProvider"]
