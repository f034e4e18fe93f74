from datetime import datetime, timedelta, timezone

import pytest
from rich.console import Console

from redwood.config import SettingsDraft, TrackerConfig
from redwood.models.air_traffic import AircraftRecord, RankedAircraft
from redwood.models.geo import Coordinate
from redwood.models.snapshot import Outcome, Snapshot
from redwood.tui.state import UiState, ViewMode
from redwood.tui.views import (
    RADAR_HEIGHT,
    RADAR_WIDTH,
    DashboardContext,
    format_age,
    operator_color,
    radar_grid,
    render_frame,
    status_text,
)

NOW = datetime(2024, 5, 3, 19, 40, tzinfo=timezone.utc)
CONTEXT = DashboardContext(
    reference=Coordinate(latitude=37.7749, longitude=-122.4194),
    config=TrackerConfig(detection_radius_km=50.0),
    config_path="config.toml",
    registry_enabled=True,
)


def _ranked(icao, distance, bearing, **fields):
    return RankedAircraft(
        aircraft=AircraftRecord(icao24=icao, **fields),
        distance_km=distance,
        bearing_deg=bearing,
    )


UNITED = _ranked(
    "a1b2c3",
    4.2,
    271.0,
    callsign="UAL123",
    registration="N12345",
    operator="United Airlines",
    manufacturer="Boeing",
    model="737-800",
    typecode="B738",
    altitude_m=3048.0,
    velocity_ms=120.0,
    heading_deg=90.0,
)
ANON = _ranked("abc999", 20.5, 45.0)


def _render(frame, width=160, height=40) -> str:
    console = Console(record=True, width=width, height=height, color_system=None)
    console.print(frame)
    return console.export_text()


def _ok_snapshot(*aircraft):
    return Snapshot(
        aircraft=tuple(aircraft),
        captured_at=NOW - timedelta(seconds=5),
        outcome=Outcome.OK,
        last_success_at=NOW - timedelta(seconds=5),
        received_count=12,
        enriched_count=1,
    )


def test_format_age():
    assert format_age(NOW, None) == "never"
    assert format_age(NOW, NOW - timedelta(seconds=7)) == "7s ago"
    assert format_age(NOW, NOW - timedelta(minutes=5)) == "5m ago"
    assert format_age(NOW, NOW + timedelta(seconds=3)) == "0s ago"


def test_operator_color():
    assert operator_color("United Airlines") == "blue"
    assert operator_color("SOUTHWEST") == "yellow"
    assert operator_color(None) == "white"
    assert operator_color("Private owner") == "white"


def test_status_text_variants():
    assert status_text(Snapshot.pending(), NOW).plain == "LOADING"
    assert status_text(_ok_snapshot(), NOW).plain == "LIVE  updated 5s ago"

    failed = Snapshot(
        outcome=Outcome.FAILED,
        captured_at=NOW,
        error="provider rate limit reached (HTTP 429)",
        last_success_at=NOW - timedelta(seconds=65),
    )
    plain = status_text(failed, NOW).plain
    assert plain.startswith("STALE")
    assert "data 65s ago" in plain
    assert "last error: provider rate limit reached (HTTP 429)" in plain


def test_pending_frame_shows_loading():
    text = _render(render_frame(Snapshot.pending(), UiState(), CONTEXT, NOW))

    assert "LOADING" in text
    assert "Acquiring aircraft data..." in text
    assert "37.7749, -122.4194" in text


def test_empty_ok_frame_shows_no_aircraft_message():
    text = _render(render_frame(_ok_snapshot(), UiState(), CONTEXT, NOW))

    assert "No aircraft within 50 km" in text
    assert "LIVE" in text


def test_failed_frame_without_history_shows_error():
    snapshot = Snapshot(outcome=Outcome.FAILED, captured_at=NOW, error="provider unreachable")

    text = _render(render_frame(snapshot, UiState(view_mode=ViewMode.SPOTTER), CONTEXT, NOW))

    assert "No data: provider unreachable" in text
    assert "STALE" in text


def test_dashboard_shows_selected_aircraft_details():
    snapshot = _ok_snapshot(UNITED, ANON)

    text = _render(render_frame(snapshot, UiState(), CONTEXT, NOW))

    assert "UAL123" in text
    assert "ABC999" in text
    assert "N12345" in text
    assert "Boeing 737-800 (B738)" in text
    assert "4.2 km at 271°" in text
    assert "432 km/h" in text
    assert "2 of 12" in text


def test_dashboard_selection_follows_ui_state():
    snapshot = _ok_snapshot(UNITED, ANON)

    text = _render(render_frame(snapshot, UiState(selected_index=1), CONTEXT, NOW))

    assert "Unknown aircraft" in text
    assert "RAW DATA" in text


def test_stale_frame_keeps_previous_aircraft():
    snapshot = Snapshot(
        aircraft=(UNITED,),
        captured_at=NOW,
        outcome=Outcome.FAILED,
        error="fetch timed out after 10s",
        last_success_at=NOW - timedelta(seconds=40),
    )

    text = _render(render_frame(snapshot, UiState(), CONTEXT, NOW), width=200)

    assert "STALE" in text
    assert "last error: fetch timed out after 10s" in text
    assert "UAL123" in text


def test_spotter_view():
    text = _render(
        render_frame(_ok_snapshot(UNITED), UiState(view_mode=ViewMode.SPOTTER), CONTEXT, NOW)
    )

    assert "United Airlines" in text
    assert "UAL123" in text
    assert "bearing 271°" in text


def test_settings_view_lists_configuration():
    text = _render(
        render_frame(Snapshot.pending(), UiState(view_mode=ViewMode.SETTINGS), CONTEXT, NOW)
    )

    assert "Detection radius" in text
    assert "50 km" in text
    assert "Poll interval" in text
    assert "30 s" in text
    assert "enabled" in text


def test_radar_grid_places_aircraft():
    north_edge = _ranked("000001", 50.0, 0.0, callsign="NORTH")
    east_half = _ranked("000002", 25.0, 90.0)
    snapshot = _ok_snapshot(north_edge, east_half)

    grid = radar_grid(snapshot, selected=0, radius_km=50.0)

    assert len(grid) == RADAR_HEIGHT
    assert all(len(row) == RADAR_WIDTH for row in grid)
    assert grid[RADAR_HEIGHT // 2][RADAR_WIDTH // 2][0] == "+"
    assert grid[0][RADAR_WIDTH // 2][0] == "✈"
    assert "".join(cell[0] for cell in grid[0][RADAR_WIDTH // 2 + 1 :]).startswith(" NORTH")
    assert grid[RADAR_HEIGHT // 2][RADAR_WIDTH // 2 + RADAR_WIDTH // 4][0] == "•"


def test_radar_view_renders():
    snapshot = _ok_snapshot(UNITED)

    text = _render(render_frame(snapshot, UiState(view_mode=ViewMode.RADAR), CONTEXT, NOW))

    assert "Precision Radar (50 km)" in text
    assert "✈" in text


@pytest.mark.parametrize("mode", list(ViewMode))
def test_every_view_renders_every_outcome(mode):
    snapshots = [
        Snapshot.pending(),
        _ok_snapshot(),
        _ok_snapshot(UNITED, ANON),
        Snapshot(outcome=Outcome.FAILED, captured_at=NOW, error="boom"),
    ]
    for snapshot in snapshots:
        text = _render(render_frame(snapshot, UiState(view_mode=mode, selected_index=7), CONTEXT, NOW))
        assert "REDWOOD" in text
        assert "q quit" in text


def test_settings_view_shows_draft_and_message():
    draft = SettingsDraft.from_config(CONTEXT.config, CONTEXT.reference).adjust(3, 1)
    ui = UiState(
        view_mode=ViewMode.SETTINGS,
        draft=draft,
        settings_index=3,
        settings_message="Config saved. Restart to apply changes.",
    )

    text = _render(render_frame(Snapshot.pending(), ui, CONTEXT, NOW))

    assert "55 km" in text
    assert "Config saved. Restart to apply changes." in text
    assert "s save" in text
