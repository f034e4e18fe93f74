"""Command-line entry point and process lifecycle for Redwood.

Usage examples:
    redwood
    redwood --manual --lat 51.47 --lon -0.4543 --radius 30
    redwood import-registry data/aircraft-database-complete-2025-08.csv
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
import sys

from rich.console import Console

from redwood import __version__
from redwood.config import VIEW_NAMES, Settings, TrackerConfig, load_tracker_config, settings
from redwood.errors import ConfigError, RenderError
from redwood.ingestors import IpApiLocator, OpenSkyProvider
from redwood.models.geo import Coordinate
from redwood.services import (
    Acquirer,
    AircraftRegistry,
    ConfigWriter,
    GeoResolver,
    SharedSnapshot,
)
from redwood.services.acquirer import Decorator, Provider
from redwood.tui import (
    ConsoleScreen,
    DashboardContext,
    KeyReader,
    RawTerminalDriver,
    RenderLoop,
    TerminalLifecycle,
    UiState,
    ViewMode,
)
from redwood.tui.render_loop import FrameSink, KeySource

logger = logging.getLogger("redwood")


def configure_logging(config: Settings) -> None:
    """Send log records to a daily-rotated file; the terminal belongs to the UI."""

    handlers: list[logging.Handler]
    try:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers = [
            TimedRotatingFileHandler(
                log_dir / "redwood.log", when="midnight", backupCount=7, encoding="utf-8"
            )
        ]
    except OSError as exc:
        sys.stderr.write(f"redwood: logging disabled, cannot open {config.log_dir}: {exc}\n")
        handlers = [logging.NullHandler()]

    level = config.log_level.upper()
    if not isinstance(logging.getLevelName(level), int):
        sys.stderr.write(f"redwood: unknown log level {config.log_level!r}, using INFO\n")
        level = "INFO"

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
    )


async def run_dashboard(
    *,
    config: TrackerConfig,
    reference: Coordinate,
    provider: Provider,
    keys: KeySource,
    screen: FrameSink,
    context: DashboardContext,
    registry: Decorator | None = None,
    frame_interval: float | None = None,
) -> None:
    """Run the acquirer and the render loop until the user quits.

    The acquirer and the render loop share only the snapshot store and the
    shutdown event. If the acquirer dies, shutdown is signalled and its
    exception re-raised here. Settings saves run in a third task that is
    cancelled on the way out.
    """

    store = SharedSnapshot()
    shutdown = asyncio.Event()
    writer = ConfigWriter(context.config_path)
    acquirer = Acquirer(
        provider=provider,
        store=store,
        reference=reference,
        radius_km=config.detection_radius_km,
        poll_interval=config.poll_interval_seconds,
        fetch_timeout=config.fetch_timeout_seconds,
        registry=registry,
    )
    render_loop = RenderLoop(
        store=store,
        keys=keys,
        screen=screen,
        context=context,
        ui=UiState(view_mode=ViewMode(config.default_view)),
        frame_interval=frame_interval or settings.frame_interval,
        settings_sink=writer,
    )

    acquirer_task = asyncio.create_task(acquirer.run(shutdown), name="redwood-acquirer")
    acquirer_task.add_done_callback(lambda _task: shutdown.set())
    writer_task = asyncio.create_task(writer.run(), name="redwood-config-writer")
    try:
        await render_loop.run(shutdown)
    finally:
        shutdown.set()
        writer_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer_task
        await acquirer_task


def _open_registry(database_url: str | None = None) -> AircraftRegistry | None:
    registry = AircraftRegistry(database_url)
    if not registry.exists():
        logger.info(
            "No aircraft registry at %s; run `redwood import-registry CSV` to enable enrichment",
            registry.database_url,
        )
        return None
    return registry


def cmd_run(args: argparse.Namespace) -> int:
    logger.info("Redwood %s starting up", __version__, extra={"event": "startup"})
    config_path = args.config or settings.config_path

    try:
        config = load_tracker_config(
            config_path,
            force_manual=args.manual,
            overrides={
                "manual_lat": args.lat,
                "manual_lon": args.lon,
                "detection_radius": args.radius,
                "default_view": args.view,
            },
        )
        reference = asyncio.run(GeoResolver(config, IpApiLocator()).resolve())
    except ConfigError as exc:
        logger.error("Startup failed: %s", exc)
        sys.stderr.write(f"redwood: {exc}\n")
        return 2

    try:
        fd = sys.stdin.fileno()
    except (OSError, ValueError):
        fd = -1
    if fd < 0 or not os.isatty(fd):
        sys.stderr.write("redwood: standard input is not a terminal\n")
        return 2

    registry = _open_registry()
    console = Console()
    context = DashboardContext(
        reference=reference,
        config=config,
        config_path=str(config_path),
        registry_enabled=registry is not None,
    )

    try:
        with TerminalLifecycle(RawTerminalDriver(console, fd)):
            asyncio.run(
                run_dashboard(
                    config=config,
                    reference=reference,
                    provider=OpenSkyProvider(),
                    keys=KeyReader(fd),
                    screen=ConsoleScreen(console),
                    context=context,
                    registry=registry,
                )
            )
    except RenderError as exc:
        logger.error("Rendering failed: %s", exc)
        sys.stderr.write(f"redwood: {exc}\n")
        return 1
    except Exception as exc:
        logger.exception("Dashboard terminated by an unexpected error")
        sys.stderr.write(f"redwood: unexpected error: {exc}\n")
        return 1

    logger.info("Redwood shut down cleanly", extra={"event": "shutdown"})
    return 0


def cmd_import_registry(args: argparse.Namespace) -> int:
    registry = AircraftRegistry(args.db_url)

    def report(count: int) -> None:
        print(f"\r  {count:,} aircraft imported", end="", flush=True)

    try:
        count = registry.import_csv(args.csv, progress=report)
    except (OSError, ValueError) as exc:
        logger.error("Registry import failed: %s", exc)
        sys.stderr.write(f"\nredwood: registry import failed: {exc}\n")
        return 1

    print(f"\nImported {count:,} aircraft into {registry.database_url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redwood", description="Live terminal view of the aircraft nearest to you."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to config.toml (default: ./config.toml)")
    parser.add_argument(
        "--manual",
        action="store_true",
        help="Use the manual coordinate instead of IP geolocation",
    )
    parser.add_argument("--lat", type=float, help="Manual reference latitude")
    parser.add_argument("--lon", type=float, help="Manual reference longitude")
    parser.add_argument("--radius", type=float, help="Detection radius in km")
    parser.add_argument("--view", choices=VIEW_NAMES, help="Initial view")
    parser.set_defaults(func=cmd_run)

    subparsers = parser.add_subparsers(dest="command")
    import_parser = subparsers.add_parser(
        "import-registry", help="Build the local aircraft registry from a CSV dump"
    )
    import_parser.add_argument("csv", help="OpenSky aircraft-database CSV file")
    import_parser.add_argument("--db-url", help="SQLAlchemy URL of the registry database")
    import_parser.set_defaults(func=cmd_import_registry)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
