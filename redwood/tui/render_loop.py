"""Foreground loop: read input, read the latest snapshot, redraw."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Callable, Protocol

from rich.console import Console, RenderableType
from rich.control import Control
from rich.screen import Screen

from redwood.config import SettingsDraft
from redwood.errors import RenderError
from redwood.services.snapshot_store import SharedSnapshot
from redwood.tui.state import UiState
from redwood.tui.views import DashboardContext, render_frame

logger = logging.getLogger("redwood.tui.render_loop")


class KeySource(Protocol):
    def read_keys(self, timeout: float = 0.0) -> list[str]: ...


class FrameSink(Protocol):
    def present(self, frame: RenderableType) -> None: ...


class SettingsSink(Protocol):
    message: str | None

    def request(self, draft: SettingsDraft) -> None: ...


class ConsoleScreen:
    """Draw full frames onto a rich console already in alternate-screen mode."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def present(self, frame: RenderableType) -> None:
        with self.console:
            self.console.control(Control.home())
            self.console.print(Screen(frame), end="")


class RenderLoop:
    """Cooperative render loop.

    One iteration polls keys without blocking, reads the shared snapshot
    exactly once, builds the whole frame from that value and presents it.
    It never fetches, ranks or writes files, and never waits on the acquirer
    or the settings writer: the only suspension point is the sleep between
    frames. A settings save is handed to ``settings_sink`` and happens elsewhere.
    """

    def __init__(
        self,
        *,
        store: SharedSnapshot,
        keys: KeySource,
        screen: FrameSink,
        context: DashboardContext,
        ui: UiState | None = None,
        frame_interval: float = 0.15,
        clock: Callable[[], datetime] | None = None,
        settings_sink: SettingsSink | None = None,
    ) -> None:
        self.store = store
        self.keys = keys
        self.screen = screen
        self.context = context
        self.ui = ui or UiState()
        self.frame_interval = frame_interval
        self.clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self.settings_sink = settings_sink
        self.frames = 0
        if self.ui.draft is None:
            self.ui.draft = SettingsDraft.from_config(context.config, context.reference)

    def step(self) -> None:
        """Run a single iteration of the loop."""

        pressed = self.keys.read_keys(0.0)
        snapshot = self.store.current()
        for key in pressed:
            self.ui.handle_key(key, len(snapshot.aircraft))
        self._forward_settings()
        if self.ui.should_quit:
            return

        frame = render_frame(snapshot, self.ui, self.context, self.clock())
        try:
            self.screen.present(frame)
        except OSError as exc:
            raise RenderError(f"unable to draw to the terminal: {exc}") from exc
        self.frames += 1

    def _forward_settings(self) -> None:
        if self.ui.save_requested:
            self.ui.save_requested = False
            if self.settings_sink is None or self.ui.draft is None:
                self.ui.settings_message = "Saving is not available"
            else:
                self.settings_sink.request(self.ui.draft)
        if self.settings_sink is not None and self.settings_sink.message is not None:
            self.ui.settings_message = self.settings_sink.message

    async def run(self, shutdown: asyncio.Event) -> None:
        """Redraw until the user quits or ``shutdown`` is set by someone else."""

        logger.info("Render loop started in %s view", self.ui.view_mode.value)
        try:
            while not shutdown.is_set():
                self.step()
                if self.ui.should_quit:
                    logger.info("Quit requested from keyboard")
                    break
                await asyncio.sleep(self.frame_interval)
        finally:
            shutdown.set()
            logger.info("Render loop stopped after %s frames", self.frames)


__all__ = ["ConsoleScreen", "FrameSink", "KeySource", "RenderLoop", "SettingsSink"]
