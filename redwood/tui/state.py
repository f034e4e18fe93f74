"""Local UI state of the render loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from redwood.config import SETTINGS_FIELD_COUNT, SettingsDraft


class ViewMode(str, Enum):
    DASHBOARD = "dashboard"
    SPOTTER = "spotter"
    RADAR = "radar"
    SETTINGS = "settings"


VIEW_KEYS = {
    "1": ViewMode.DASHBOARD,
    "2": ViewMode.SPOTTER,
    "3": ViewMode.RADAR,
    "4": ViewMode.SETTINGS,
}

QUIT_KEYS = frozenset({"q", "esc", "ctrl-c"})


@dataclass
class UiState:
    """View mode, selection and settings edits; independent of snapshot content."""

    view_mode: ViewMode = ViewMode.DASHBOARD
    selected_index: int = 0
    should_quit: bool = False

    settings_index: int = 0
    draft: Optional[SettingsDraft] = None
    save_requested: bool = False
    settings_message: Optional[str] = None

    def handle_key(self, key: str, aircraft_count: int) -> None:
        if key in QUIT_KEYS:
            self.should_quit = True
        elif key in VIEW_KEYS:
            self.view_mode = VIEW_KEYS[key]
        elif self.view_mode is ViewMode.SETTINGS:
            self._handle_settings_key(key)
        elif key in ("down", "j"):
            if aircraft_count:
                self.selected_index = (self.clamped_index(aircraft_count) + 1) % aircraft_count
        elif key in ("up", "k"):
            if aircraft_count:
                self.selected_index = (self.clamped_index(aircraft_count) - 1) % aircraft_count

    def _handle_settings_key(self, key: str) -> None:
        if key in ("down", "j"):
            self.settings_index = (self.settings_index + 1) % SETTINGS_FIELD_COUNT
        elif key in ("up", "k"):
            self.settings_index = (self.settings_index - 1) % SETTINGS_FIELD_COUNT
        elif self.draft is None:
            return
        elif key in ("enter", "space"):
            self.draft = self.draft.toggle(self.settings_index)
        elif key in ("+", "="):
            self.draft = self.draft.adjust(self.settings_index, 1)
        elif key == "-":
            self.draft = self.draft.adjust(self.settings_index, -1)
        elif key == "s":
            self.save_requested = True

    def clamped_index(self, aircraft_count: int) -> int:
        """Selection valid for a list of ``aircraft_count`` items."""

        if aircraft_count <= 0:
            return 0
        return min(self.selected_index, aircraft_count - 1)


__all__ = ["QUIT_KEYS", "UiState", "VIEW_KEYS", "ViewMode"]
