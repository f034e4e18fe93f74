"""Single-writer, multi-reader cell holding the current snapshot."""

from __future__ import annotations

import threading

from redwood.models.snapshot import Snapshot


class SharedSnapshot:
    """Hand the latest acquisition result from the acquirer to the renderer.

    Snapshots are frozen, so swapping the reference under the lock is all the
    synchronisation needed. The lock is held only for the swap or the read,
    never across I/O.
    """

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial if initial is not None else Snapshot.pending()
        self._version = 0

    def publish(self, snapshot: Snapshot) -> None:
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"expected Snapshot, got {type(snapshot).__name__}")
        with self._lock:
            self._current = snapshot
            self._version += 1

    def current(self) -> Snapshot:
        with self._lock:
            return self._current

    @property
    def version(self) -> int:
        """Number of snapshots published so far."""

        with self._lock:
            return self._version


__all__ = ["SharedSnapshot"]
