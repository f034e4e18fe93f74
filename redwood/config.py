"""Configuration settings for Redwood.

Process-level settings come from environment variables (``Settings``). The
user-facing tracker configuration lives in ``config.toml`` and is loaded once
at startup into an immutable ``TrackerConfig``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from redwood.errors import ConfigError, ConfigReason
from redwood.models.geo import Coordinate

logger = logging.getLogger("redwood.config")

VIEW_NAMES = ("dashboard", "spotter", "radar", "settings")


@dataclass
class Settings:
    """Process configuration loaded from environment variables."""

    log_level: str = os.getenv("REDWOOD_LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("REDWOOD_LOG_DIR", "logs")
    config_path: str = os.getenv("REDWOOD_CONFIG_PATH", "config.toml")

    # Flight-data provider
    opensky_base_url: str = os.getenv(
        "OPENSKY_BASE_URL",
        "https://opensky-network.org/api/states/all",
    )
    opensky_timeout: float = float(os.getenv("OPENSKY_TIMEOUT", "10.0"))

    # IP geolocation
    geolocation_url: str = os.getenv("GEOLOCATION_URL", "http://ip-api.com/json/")
    geolocation_timeout: float = float(os.getenv("GEOLOCATION_TIMEOUT", "5.0"))

    # Local aircraft registry (optional enrichment)
    registry_db_url: str = os.getenv(
        "REDWOOD_REGISTRY_DB_URL", "sqlite:///./opensky_aircraft.db"
    )

    # Seconds between frames of the render loop
    frame_interval: float = float(os.getenv("REDWOOD_FRAME_INTERVAL", "0.15"))


settings = Settings()


class TrackerConfig(BaseModel):
    """Tracker configuration; immutable for the process lifetime."""

    detection_radius_km: float = Field(default=50.0, gt=0)
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    auto_geo: bool = True
    manual_coordinate: Optional[Coordinate] = None
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    default_view: str = "dashboard"

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    @field_validator("default_view")
    @classmethod
    def _known_view(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in VIEW_NAMES:
            raise ValueError(f"default_view must be one of {', '.join(VIEW_NAMES)}")
        return normalized


class _LocationSection(BaseModel):
    auto_geo: bool = True
    manual_lat: Optional[float] = 37.7749
    manual_lon: Optional[float] = -122.4194
    detection_radius: float = 50.0

    model_config = ConfigDict(extra="ignore")


class _ApiSection(BaseModel):
    poll_interval_seconds: float = 30.0
    fetch_timeout_seconds: float = 10.0

    model_config = ConfigDict(extra="ignore")


class _UiSection(BaseModel):
    default_view: str = "dashboard"

    model_config = ConfigDict(extra="ignore")


class _ConfigFile(BaseModel):
    location: _LocationSection = Field(default_factory=_LocationSection)
    api: _ApiSection = Field(default_factory=_ApiSection)
    ui: _UiSection = Field(default_factory=_UiSection)

    model_config = ConfigDict(extra="ignore")


_CONFIG_TEMPLATE = """\
# Redwood configuration. Restart the dashboard after editing.

[location]
# Use IP geolocation for the reference point; falls back to manual_lat/lon.
auto_geo = {auto_geo}
{manual}# Aircraft farther than this many kilometres are not shown.
detection_radius = {detection_radius}

[api]
poll_interval_seconds = {poll_interval}
fetch_timeout_seconds = {fetch_timeout}

[ui]
# dashboard, spotter, radar or settings
default_view = "{default_view}"
"""


def _toml_number(value: float) -> str:
    return repr(round(float(value), 4))


def render_config_toml(config: TrackerConfig) -> str:
    """Serialize ``config`` in the layout of the default template."""

    manual = ""
    if config.manual_coordinate is not None:
        manual = (
            f"manual_lat = {_toml_number(config.manual_coordinate.latitude)}\n"
            f"manual_lon = {_toml_number(config.manual_coordinate.longitude)}\n"
        )
    return _CONFIG_TEMPLATE.format(
        auto_geo="true" if config.auto_geo else "false",
        manual=manual,
        detection_radius=_toml_number(config.detection_radius_km),
        poll_interval=_toml_number(config.poll_interval_seconds),
        fetch_timeout=_toml_number(config.fetch_timeout_seconds),
        default_view=config.default_view,
    )


DEFAULT_CONFIG_TOML = render_config_toml(
    TrackerConfig(manual_coordinate=Coordinate(latitude=37.7749, longitude=-122.4194))
)


def save_tracker_config(path: str | Path, config: TrackerConfig) -> Path:
    """Write ``config`` to ``path``, replacing the file in one step."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(f".{target.name}.tmp")
    staging.write_text(render_config_toml(config))
    os.replace(staging, target)
    logger.info("Saved configuration to %s", target, extra={"event": "config_saved"})
    return target


SETTINGS_FIELD_COUNT = 6


@dataclass(frozen=True)
class SettingsDraft:
    """Editable copy of the tracker configuration shown in the settings view.

    Field order matches the rows of the view: auto_geo, manual_lat,
    manual_lon, detection_radius, poll_interval, default_view. Edits return
    a new draft; nothing is written until the draft is saved.
    """

    auto_geo: bool
    manual_lat: float
    manual_lon: float
    detection_radius: float
    poll_interval: float
    default_view: str
    fetch_timeout: float = 10.0

    @classmethod
    def from_config(cls, config: TrackerConfig, fallback: Coordinate) -> "SettingsDraft":
        manual = config.manual_coordinate or fallback
        return cls(
            auto_geo=config.auto_geo,
            manual_lat=manual.latitude,
            manual_lon=manual.longitude,
            detection_radius=config.detection_radius_km,
            poll_interval=config.poll_interval_seconds,
            default_view=config.default_view,
            fetch_timeout=config.fetch_timeout_seconds,
        )

    def toggle(self, index: int) -> "SettingsDraft":
        if index == 0:
            return replace(self, auto_geo=not self.auto_geo)
        if index == 5:
            position = VIEW_NAMES.index(self.default_view) if self.default_view in VIEW_NAMES else -1
            return replace(self, default_view=VIEW_NAMES[(position + 1) % len(VIEW_NAMES)])
        return self

    def adjust(self, index: int, direction: int) -> "SettingsDraft":
        """Step a numeric field up (``direction`` 1) or down (-1) within its bounds."""

        if index == 1:
            return replace(self, manual_lat=_bounded(self.manual_lat, 0.1 * direction, -90.0, 90.0))
        if index == 2:
            return replace(self, manual_lon=_bounded(self.manual_lon, 0.1 * direction, -180.0, 180.0))
        if index == 3:
            return replace(
                self, detection_radius=_bounded(self.detection_radius, 5.0 * direction, 1.0, 500.0)
            )
        if index == 4:
            return replace(self, poll_interval=_bounded(self.poll_interval, 5.0 * direction, 5.0, 600.0))
        return self

    def to_config(self) -> TrackerConfig:
        try:
            return TrackerConfig(
                detection_radius_km=self.detection_radius,
                poll_interval_seconds=self.poll_interval,
                auto_geo=self.auto_geo,
                manual_coordinate=Coordinate(latitude=self.manual_lat, longitude=self.manual_lon),
                fetch_timeout_seconds=self.fetch_timeout,
                default_view=self.default_view,
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc


def _bounded(value: float, step: float, low: float, high: float) -> float:
    return round(min(max(value + step, low), high), 4)


def _write_default_config(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TOML)
        logger.info("Wrote default configuration to %s", path)
    except OSError as exc:
        logger.warning("Could not write default configuration to %s: %s", path, exc)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        _write_default_config(path)
        return {}

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"{path} is not valid TOML: {exc}", reason=ConfigReason.UNREADABLE
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Unable to read {path}: {exc}", reason=ConfigReason.UNREADABLE
        ) from exc


def _manual_coordinate(lat: float | None, lon: float | None) -> Coordinate | None:
    if lat is None or lon is None:
        return None
    return Coordinate(latitude=lat, longitude=lon)


def load_tracker_config(
    path: str | Path | None = None,
    *,
    force_manual: bool = False,
    overrides: dict[str, Any] | None = None,
) -> TrackerConfig:
    """Load ``config.toml`` into a validated ``TrackerConfig``.

    A missing file is replaced by the default template and defaults are used.
    Invalid TOML or out-of-range values raise ``ConfigError`` so startup fails
    before the terminal is touched. ``overrides`` (e.g. from CLI flags) use
    the flat names ``manual_lat``, ``manual_lon``, ``detection_radius`` and
    ``default_view``; ``None`` values are ignored.
    """

    config_path = Path(path or settings.config_path)
    raw = _read_config_file(config_path)

    try:
        parsed = _ConfigFile.model_validate(raw)
        location = parsed.location.model_dump()
        ui = parsed.ui.model_dump()
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key in location:
                location[key] = value
            elif key in ui:
                ui[key] = value
            else:
                raise ConfigError(f"Unknown configuration override: {key}")

        config = TrackerConfig(
            detection_radius_km=location["detection_radius"],
            poll_interval_seconds=parsed.api.poll_interval_seconds,
            auto_geo=False if force_manual else location["auto_geo"],
            manual_coordinate=_manual_coordinate(
                location["manual_lat"], location["manual_lon"]
            ),
            fetch_timeout_seconds=parsed.api.fetch_timeout_seconds,
            default_view=ui["default_view"],
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc

    logger.info(
        "Loaded configuration from %s (radius=%.1f km, poll=%.0fs, auto_geo=%s)",
        config_path,
        config.detection_radius_km,
        config.poll_interval_seconds,
        config.auto_geo,
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_TOML",
    "SETTINGS_FIELD_COUNT",
    "Settings",
    "SettingsDraft",
    "TrackerConfig",
    "VIEW_NAMES",
    "load_tracker_config",
    "render_config_toml",
    "save_tracker_config",
    "settings",
]
