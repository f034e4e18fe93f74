"""Frame construction: pure functions from a snapshot to rich renderables.

Nothing in here performs I/O. The render loop hands one snapshot and the
local UI state to ``render_frame`` and presents whatever comes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math

from rich import box
from rich.align import Align
from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from redwood.config import SettingsDraft, TrackerConfig
from redwood.models.air_traffic import RankedAircraft
from redwood.models.geo import Coordinate
from redwood.models.snapshot import Outcome, Snapshot
from redwood.tui.state import UiState, ViewMode

# Data older than this is flagged even when the last cycle succeeded
FRESHNESS_LIMIT_SECONDS = 40

RADAR_WIDTH = 61
RADAR_HEIGHT = 25

_OPERATOR_COLORS = (
    ("united", "blue"),
    ("southwest", "yellow"),
    ("delta", "rgb(180,20,40)"),
    ("american", "cyan"),
    ("alaska", "rgb(0,66,110)"),
    ("fedex", "magenta"),
    ("ups", "rgb(80,40,0)"),
)

HELP_TEXT = "1 dashboard  2 spotter  3 radar  4 settings  j/k select  q quit"
SETTINGS_HELP_TEXT = "j/k select  enter toggle  +/- change  s save  1-4 views  q quit"


@dataclass(frozen=True)
class DashboardContext:
    """Read-only facts about this session shown alongside the data."""

    reference: Coordinate
    config: TrackerConfig
    config_path: str = "config.toml"
    registry_enabled: bool = False


def operator_color(operator: str | None) -> str:
    name = (operator or "").lower()
    for needle, color in _OPERATOR_COLORS:
        if needle in name:
            return color
    return "white"


def format_age(now: datetime, then: datetime | None) -> str:
    if then is None:
        return "never"
    seconds = max(0, int((now - then).total_seconds()))
    if seconds < 120:
        return f"{seconds}s ago"
    return f"{seconds // 60}m ago"


def _fmt(value: float | None, pattern: str, missing: str = "---") -> str:
    return missing if value is None else pattern.format(value)


def _altitude(aircraft: RankedAircraft) -> str:
    altitude = aircraft.aircraft.altitude_m
    if altitude is None:
        return "GND" if aircraft.aircraft.on_ground else "---"
    return f"{altitude:,.0f} m ({altitude * 3.28084:,.0f} ft)"


def _speed(aircraft: RankedAircraft) -> str:
    velocity = aircraft.aircraft.velocity_ms
    return _fmt(None if velocity is None else velocity * 3.6, "{:.0f} km/h")


def _airframe(item: RankedAircraft) -> str:
    aircraft = item.aircraft
    parts = [aircraft.manufacturer, aircraft.model]
    if aircraft.typecode:
        parts.append(f"({aircraft.typecode})")
    return " ".join(part for part in parts if part) or "Unknown aircraft"


def status_text(snapshot: Snapshot, now: datetime) -> Text:
    """LOADING / LIVE / STALE indicator for the header."""

    if snapshot.outcome is Outcome.PENDING:
        return Text("LOADING", style="bold yellow")
    if snapshot.outcome is Outcome.FAILED:
        text = Text("STALE", style="bold red")
        text.append(f"  data {format_age(now, snapshot.last_success_at)}", style="red")
        text.append(f"  last error: {snapshot.error or 'unknown'}", style="dim red")
        return text

    age = format_age(now, snapshot.captured_at)
    fresh = (
        snapshot.captured_at is not None
        and (now - snapshot.captured_at).total_seconds() < FRESHNESS_LIMIT_SECONDS
    )
    text = Text("LIVE", style="bold green")
    text.append(f"  updated {age}", style="green" if fresh else "red")
    return text


def _header(snapshot: Snapshot, context: DashboardContext, now: datetime) -> Text:
    header = Text(" REDWOOD ", style="bold black on cyan")
    header.append(f"  base {context.reference}", style="magenta")
    header.append(f"  range {context.config.detection_radius_km:g} km  ", style="dim")
    header.append_text(status_text(snapshot, now))
    return header


def _empty_message(snapshot: Snapshot, context: DashboardContext) -> Text:
    if snapshot.outcome is Outcome.PENDING:
        return Text("Acquiring aircraft data...", style="yellow")
    if snapshot.outcome is Outcome.FAILED and not snapshot.aircraft:
        return Text(f"No data: {snapshot.error or 'provider unavailable'}", style="red")
    return Text(
        f"No aircraft within {context.config.detection_radius_km:g} km", style="dim"
    )


def _flight_list(snapshot: Snapshot, selected: int) -> Table:
    table = Table(box=None, expand=True, show_header=True, header_style="bold dim")
    table.add_column("Flight", no_wrap=True)
    table.add_column("Dist", justify="right", no_wrap=True)
    table.add_column("Operator", no_wrap=True, overflow="ellipsis", style="dim")
    for index, item in enumerate(snapshot.aircraft):
        style = "bold cyan on rgb(30,30,60)" if index == selected else ""
        table.add_row(
            item.aircraft.display_name,
            f"{item.distance_km:.1f}",
            (item.aircraft.operator or "???")[:12],
            style=style,
        )
    return table


def _telemetry_panel(
    snapshot: Snapshot, item: RankedAircraft, context: DashboardContext, now: datetime
) -> Panel:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold")
    grid.add_column()
    grid.add_column(style="bold")
    grid.add_column()
    network = (
        Text("ONLINE", style="green")
        if snapshot.outcome is Outcome.OK
        else Text("DEGRADED", style="red")
    )
    grid.add_row("NETWORK", network, "UPDATED", format_age(now, snapshot.last_success_at))
    grid.add_row(
        "IN RANGE",
        f"{len(snapshot.aircraft)} of {snapshot.received_count}",
        "DB HITS",
        f"{snapshot.enriched_count}/{len(snapshot.aircraft)}"
        if context.registry_enabled
        else "registry off",
    )
    grid.add_row(
        "SELECTED",
        Text(item.aircraft.icao24.upper(), style="yellow"),
        "TRACKING",
        "ENRICHED" if item.aircraft.is_enriched else "RAW DATA",
    )
    return Panel(grid, title="System Telemetry", border_style="dim")


def _detail_panel(item: RankedAircraft) -> Panel:
    aircraft = item.aircraft
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold", no_wrap=True)
    grid.add_column()
    operator = aircraft.operator or "Private/Unknown"
    grid.add_row("Callsign", Text(aircraft.callsign or "N/A", style="yellow"))
    grid.add_row("Registration", Text(aircraft.registration or "N/A", style="yellow"))
    grid.add_row("Operator", Text(operator, style=operator_color(operator)))
    grid.add_row("Aircraft", _airframe(item))
    grid.add_row("", "")
    grid.add_row("Distance", f"{item.distance_km:.1f} km at {item.bearing_deg:03.0f}°")
    grid.add_row("Altitude", _altitude(item))
    grid.add_row("Speed", _speed(item))
    grid.add_row("Heading", _fmt(aircraft.heading_deg, "{:03.0f}°"))
    grid.add_row("Vertical", _fmt(aircraft.vertical_rate_ms, "{:+.1f} m/s"))
    grid.add_row("Origin", aircraft.origin_country or "Unknown")
    return Panel(grid, title="Detailed Aircraft Identity", padding=(1, 2))


def render_dashboard(
    snapshot: Snapshot, ui: UiState, context: DashboardContext, now: datetime
) -> RenderableType:
    selected = ui.clamped_index(len(snapshot.aircraft))
    layout = Layout()
    layout.split_row(Layout(name="sidebar", ratio=3), Layout(name="main", ratio=7))

    if not snapshot.aircraft:
        layout["sidebar"].update(Panel(_empty_message(snapshot, context), title="Flights Nearby"))
        layout["main"].update(Panel(Align.center(_empty_message(snapshot, context), vertical="middle")))
        return layout

    layout["sidebar"].update(
        Panel(_flight_list(snapshot, selected), title="Flights Nearby", box=box.ROUNDED)
    )
    item = snapshot.aircraft[selected]
    layout["main"].split_column(Layout(name="telemetry", size=5), Layout(name="detail"))
    layout["main"]["telemetry"].update(_telemetry_panel(snapshot, item, context, now))
    layout["main"]["detail"].update(_detail_panel(item))
    return layout


def render_spotter(
    snapshot: Snapshot, ui: UiState, context: DashboardContext, now: datetime
) -> RenderableType:
    if not snapshot.aircraft:
        return Align.center(_empty_message(snapshot, context), vertical="middle")

    item = snapshot.aircraft[ui.clamped_index(len(snapshot.aircraft))]
    aircraft = item.aircraft
    identity = Group(
        Align.center(
            Text(aircraft.operator or "Unknown Operator", style=f"bold {operator_color(aircraft.operator)}")
        ),
        Align.center(Text(f" {aircraft.display_name} ", style="bold black on white")),
        Align.center(Text(aircraft.model or "Unknown Aircraft")),
        Text(""),
        Align.center(
            Text(
                f"{item.distance_km:.1f} km  bearing {item.bearing_deg:03.0f}°",
                style="cyan",
            )
        ),
        Text(""),
        Align.center(
            Text(
                f"Altitude: {_altitude(item)} | Speed: {_speed(item)} | "
                f"Heading: {_fmt(aircraft.heading_deg, '{:03.0f}°')}",
                style="dim",
            )
        ),
    )
    return Align.center(identity, vertical="middle")


def _radar_cell(
    distance_km: float, bearing_deg: float, radius_km: float
) -> tuple[int, int] | None:
    half_w = RADAR_WIDTH // 2
    half_h = RADAR_HEIGHT // 2
    theta = math.radians(bearing_deg)
    x = distance_km * math.sin(theta) / radius_km
    y = distance_km * math.cos(theta) / radius_km
    col = half_w + round(x * half_w)
    row = half_h - round(y * half_h)
    if 0 <= col < RADAR_WIDTH and 0 <= row < RADAR_HEIGHT:
        return row, col
    return None


def radar_grid(
    snapshot: Snapshot, selected: int, radius_km: float
) -> list[list[tuple[str, str]]]:
    """Character cells of the radar scope, row-major, as (glyph, style)."""

    grid = [[(" ", "")] * RADAR_WIDTH for _ in range(RADAR_HEIGHT)]

    for fraction in (0.5, 1.0):
        for step in range(0, 360, 4):
            cell = _radar_cell(radius_km * fraction, step, radius_km)
            if cell:
                grid[cell[0]][cell[1]] = ("·", "rgb(60,60,60)")

    for label, bearing in (("N", 0), ("E", 90), ("S", 180), ("W", 270)):
        cell = _radar_cell(radius_km * 0.92, bearing, radius_km)
        if cell:
            grid[cell[0]][cell[1]] = (label, "dim")

    # Draw the selection last so it stays on top
    order = [i for i in range(len(snapshot.aircraft)) if i != selected]
    if selected < len(snapshot.aircraft):
        order.append(selected)
    for index in order:
        item = snapshot.aircraft[index]
        cell = _radar_cell(item.distance_km, item.bearing_deg, radius_km)
        if cell is None:
            continue
        row, col = cell
        if index == selected:
            grid[row][col] = ("✈", "bold yellow")
            for offset, char in enumerate(f" {item.aircraft.display_name}"):
                if col + 1 + offset < RADAR_WIDTH:
                    grid[row][col + 1 + offset] = (char, "black on yellow")
        else:
            grid[row][col] = ("•", "green")

    centre = (RADAR_HEIGHT // 2, RADAR_WIDTH // 2)
    grid[centre[0]][centre[1]] = ("+", "bold cyan")
    return grid


def render_radar(
    snapshot: Snapshot, ui: UiState, context: DashboardContext, now: datetime
) -> RenderableType:
    selected = ui.clamped_index(len(snapshot.aircraft))
    scope = Text()
    for row_index, row in enumerate(
        radar_grid(snapshot, selected, context.config.detection_radius_km)
    ):
        if row_index:
            scope.append("\n")
        for glyph, style in row:
            scope.append(glyph, style=style)

    layout = Layout()
    layout.split_row(Layout(name="sidebar", ratio=1), Layout(name="scope", ratio=3))
    sidebar = (
        _flight_list(snapshot, selected) if snapshot.aircraft else _empty_message(snapshot, context)
    )
    layout["sidebar"].update(Panel(sidebar, title="Flights"))
    layout["scope"].update(
        Panel(
            Align.center(scope, vertical="middle"),
            title=f"Precision Radar ({context.config.detection_radius_km:g} km)",
        )
    )
    return layout


_SETTINGS_LABELS = (
    "Use IP geolocation",
    "Manual latitude",
    "Manual longitude",
    "Detection radius",
    "Poll interval",
    "Default view",
)


def _draft_values(draft: SettingsDraft) -> tuple[str, ...]:
    return (
        "Yes" if draft.auto_geo else "No",
        f"{draft.manual_lat:.4f}",
        f"{draft.manual_lon:.4f}",
        f"{draft.detection_radius:g} km",
        f"{draft.poll_interval:g} s",
        draft.default_view,
    )


def render_settings(
    snapshot: Snapshot, ui: UiState, context: DashboardContext, now: datetime
) -> RenderableType:
    draft = ui.draft or SettingsDraft.from_config(context.config, context.reference)

    editable = Table(box=box.ROUNDED, title=context.config_path, show_header=False)
    editable.add_column(style="bold")
    editable.add_column(style="cyan")
    for index, (label, value) in enumerate(zip(_SETTINGS_LABELS, _draft_values(draft))):
        style = "bold cyan on rgb(30,30,60)" if index == ui.settings_index else ""
        editable.add_row(label, value, style=style)

    running = Table(box=box.SIMPLE, title="This session", show_header=False)
    running.add_column(style="bold")
    running.add_column(style="dim")
    running.add_row("Reference in use", str(context.reference))
    running.add_row("Fetch timeout", f"{context.config.fetch_timeout_seconds:g} s")
    running.add_row(
        "Aircraft registry", "enabled" if context.registry_enabled else "not imported"
    )

    message = Text(
        ui.settings_message or "Saved changes apply after a restart.",
        style="yellow" if ui.settings_message else "dim",
        justify="center",
    )
    return Align.center(Group(editable, running, message), vertical="middle")


_VIEWS = {
    ViewMode.DASHBOARD: render_dashboard,
    ViewMode.SPOTTER: render_spotter,
    ViewMode.RADAR: render_radar,
    ViewMode.SETTINGS: render_settings,
}


def render_frame(
    snapshot: Snapshot, ui: UiState, context: DashboardContext, now: datetime
) -> RenderableType:
    """Build one full frame from a single snapshot."""

    layout = Layout()
    layout.split_column(
        Layout(name="header", size=1),
        Layout(name="body"),
        Layout(name="footer", size=1),
    )
    layout["header"].update(_header(snapshot, context, now))
    layout["body"].update(_VIEWS[ui.view_mode](snapshot, ui, context, now))
    help_text = SETTINGS_HELP_TEXT if ui.view_mode is ViewMode.SETTINGS else HELP_TEXT
    layout["footer"].update(Text(help_text, style="dim", justify="center"))
    return layout


__all__ = [
    "DashboardContext",
    "format_age",
    "operator_color",
    "radar_grid",
    "render_frame",
    "status_text",
]
