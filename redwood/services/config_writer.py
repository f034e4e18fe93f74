"""Persist settings edits made in the dashboard."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from redwood.config import SettingsDraft, save_tracker_config
from redwood.errors import ConfigError

logger = logging.getLogger("redwood.config_writer")

SAVED_MESSAGE = "Config saved. Restart to apply changes."


class ConfigWriter:
    """Write settings drafts to ``config.toml`` outside the render loop.

    The render loop only calls ``request``, which queues the draft and
    returns immediately. ``run`` takes drafts off the queue and writes them
    on a worker thread. ``message`` holds the outcome of the latest request
    for the settings view to display.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.message: str | None = None
        self.saved = 0
        self._requests: asyncio.Queue[SettingsDraft] = asyncio.Queue()

    def request(self, draft: SettingsDraft) -> None:
        self._requests.put_nowait(draft)
        self.message = "Saving..."

    async def run(self) -> None:
        """Save queued drafts until cancelled."""

        while True:
            draft = await self._requests.get()
            await self.save(draft)

    async def save(self, draft: SettingsDraft) -> bool:
        try:
            config = draft.to_config()
            await asyncio.to_thread(save_tracker_config, self.path, config)
        except ConfigError as exc:
            logger.warning("Rejected settings edit: %s", exc)
            self.message = "Save failed: invalid settings"
            return False
        except OSError as exc:
            logger.error("Could not save configuration to %s: %s", self.path, exc)
            self.message = f"Save failed: {exc}"
            return False

        self.saved += 1
        self.message = SAVED_MESSAGE
        return True


__all__ = ["ConfigWriter", "SAVED_MESSAGE"]
