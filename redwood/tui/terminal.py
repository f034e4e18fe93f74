"""Terminal mode ownership: raw input, alternate screen, guaranteed restore."""

from __future__ import annotations

import atexit
import logging
import signal
import sys
import termios
import threading
import tty
from types import TracebackType
from typing import Any, Protocol

from rich.console import Console

logger = logging.getLogger("redwood.tui.terminal")


class TerminalDriver(Protocol):
    def enter(self) -> None: ...

    def restore(self) -> None: ...


class RawTerminalDriver:
    """Raw-mode stdin plus rich's alternate screen and cursor control."""

    def __init__(self, console: Console, fd: int) -> None:
        self.console = console
        self.fd = fd
        self._saved_attrs: list[Any] | None = None

    def enter(self) -> None:
        self._saved_attrs = termios.tcgetattr(self.fd)
        tty.setraw(self.fd)
        # Raw input, but keep "\n" -> "\r\n" on output for rich's line breaks
        attrs = termios.tcgetattr(self.fd)
        attrs[1] |= termios.OPOST | termios.ONLCR
        termios.tcsetattr(self.fd, termios.TCSANOW, attrs)
        self.console.set_alt_screen(True)
        self.console.show_cursor(False)

    def restore(self) -> None:
        """Undo ``enter``; every step is attempted even if one fails."""

        errors: list[Exception] = []
        if self._saved_attrs is not None:
            try:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved_attrs)
            except (termios.error, OSError) as exc:
                errors.append(exc)
        for step in (
            lambda: self.console.set_alt_screen(False),
            lambda: self.console.show_cursor(True),
        ):
            try:
                step()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]


class TerminalLifecycle:
    """Scoped ownership of the terminal mode.

    Restoration runs on every way out of the ``with`` block: normal return,
    the quit key, any exception, SIGTERM, and the interpreter's excepthook
    (restore happens before the traceback is printed). ``restore`` is
    idempotent, so the overlapping paths are harmless.
    """

    def __init__(self, driver: TerminalDriver, *, install_hooks: bool = True) -> None:
        self.driver = driver
        self.install_hooks = install_hooks
        self._active = False
        self._previous_excepthook = None
        self._previous_sigterm: Any = None

    @property
    def active(self) -> bool:
        return self._active

    def __enter__(self) -> "TerminalLifecycle":
        self.enter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.restore()
        return False

    def enter(self) -> None:
        if self._active:
            return
        if self.install_hooks:
            self._install_hooks()
        # Active before the switch so a partial entry still gets undone
        self._active = True
        try:
            self.driver.enter()
        except BaseException:
            self.restore()
            raise
        logger.info("Terminal switched to raw mode", extra={"event": "terminal_entered"})

    def restore(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            self.driver.restore()
        except Exception as exc:
            logger.error("Terminal restoration incomplete: %s", exc)
        else:
            logger.info("Terminal restored", extra={"event": "terminal_restored"})
        finally:
            if self.install_hooks:
                self._uninstall_hooks()

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        previous = self._previous_excepthook or sys.__excepthook__
        self.restore()
        previous(exc_type, exc, tb)

    def _on_sigterm(self, signum: int, frame: Any) -> None:
        # Unwinds through __exit__ like any other exception
        raise SystemExit(128 + signum)

    def _install_hooks(self) -> None:
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        atexit.register(self.restore)
        if threading.current_thread() is threading.main_thread():
            self._previous_sigterm = signal.signal(signal.SIGTERM, self._on_sigterm)

    def _uninstall_hooks(self) -> None:
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        atexit.unregister(self.restore)
        if self._previous_sigterm is not None:
            if threading.current_thread() is threading.main_thread():
                signal.signal(signal.SIGTERM, self._previous_sigterm)
            self._previous_sigterm = None


__all__ = ["RawTerminalDriver", "TerminalDriver", "TerminalLifecycle"]
