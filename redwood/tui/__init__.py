"""Terminal user interface for Redwood."""

from .keyboard import KeyReader, parse_keys
from .render_loop import ConsoleScreen, RenderLoop
from .state import UiState, ViewMode
from .terminal import RawTerminalDriver, TerminalLifecycle
from .views import DashboardContext, render_frame

__all__ = [
    "ConsoleScreen",
    "DashboardContext",
    "KeyReader",
    "RawTerminalDriver",
    "RenderLoop",
    "TerminalLifecycle",
    "UiState",
    "ViewMode",
    "parse_keys",
    "render_frame",
]
