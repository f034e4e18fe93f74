"""Background acquisition of aircraft state on a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Callable, Protocol, Sequence

from redwood.errors import FetchError
from redwood.models.air_traffic import AircraftRecord, RankedAircraft
from redwood.models.geo import Coordinate
from redwood.models.snapshot import Outcome, Snapshot
from redwood.services.ranking import rank
from redwood.services.snapshot_store import SharedSnapshot

logger = logging.getLogger("redwood.acquirer")


class Provider(Protocol):
    async def fetch_states(
        self, reference: Coordinate, radius_km: float
    ) -> list[AircraftRecord]: ...


class Decorator(Protocol):
    def decorate(
        self, records: Sequence[AircraftRecord]
    ) -> tuple[list[AircraftRecord], int]: ...


class AcquirerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Acquirer:
    """Fetch, rank and publish aircraft around the reference point.

    Ticks fire every ``poll_interval`` seconds measured from the start of the
    previous fetch. At most one fetch is in flight: a tick that arrives while
    the previous fetch is still running is skipped rather than queued.

    A failed cycle publishes a FAILED snapshot that keeps the previous
    aircraft list so the dashboard can show stale data with the error.
    """

    def __init__(
        self,
        *,
        provider: Provider,
        store: SharedSnapshot,
        reference: Coordinate,
        radius_km: float,
        poll_interval: float,
        fetch_timeout: float,
        registry: Decorator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self.provider = provider
        self.store = store
        self.reference = reference
        self.radius_km = radius_km
        self.poll_interval = poll_interval
        self.fetch_timeout = fetch_timeout
        self.registry = registry
        self.clock = clock

        self.state = AcquirerState.IDLE
        self.cycles = 0
        self.skipped_ticks = 0
        self._inflight: asyncio.Task | None = None

    async def run(self, shutdown: asyncio.Event) -> None:
        """Run until ``shutdown`` is set; cancels any fetch still in flight."""

        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.info(
            "Acquirer started (radius=%.1f km, interval=%.1fs)",
            self.radius_km,
            self.poll_interval,
            extra={"event": "startup"},
        )
        try:
            while not shutdown.is_set():
                self._on_tick()

                next_tick += self.poll_interval
                delay = next_tick - loop.time()
                if delay < 0:
                    # The event loop fell behind; fire once now instead of bursting
                    next_tick = loop.time()
                    delay = 0

                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(shutdown.wait(), timeout=delay)
        finally:
            await self._cancel_inflight()
            logger.info(
                "Acquirer stopped after %s cycles (%s ticks skipped)",
                self.cycles,
                self.skipped_ticks,
                extra={"event": "shutdown"},
            )

    def _on_tick(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            self.skipped_ticks += 1
            logger.debug(
                "Previous fetch still in flight; skipping tick",
                extra={"event": "tick_skipped"},
            )
            return

        if task is not None and not task.cancelled():
            # Surfaces BaseExceptions that run_cycle does not absorb
            task.result()
        self._inflight = asyncio.create_task(self.run_cycle(), name="redwood-fetch")

    async def _cancel_inflight(self) -> None:
        task = self._inflight
        self._inflight = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_cycle(self) -> Snapshot:
        """Perform one fetch → enrich → rank → publish cycle."""

        self.state = AcquirerState.FETCHING
        try:
            snapshot = await self._acquire()
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            snapshot = self._failed(f"fetch timed out after {self.fetch_timeout:g}s")
        except FetchError as exc:
            snapshot = self._failed(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during acquisition cycle")
            snapshot = self._failed(f"unexpected error: {exc}")
        finally:
            self.state = AcquirerState.IDLE

        self.store.publish(snapshot)
        self.cycles += 1
        return snapshot

    async def _acquire(self) -> Snapshot:
        records = await asyncio.wait_for(
            self.provider.fetch_states(self.reference, self.radius_km),
            timeout=self.fetch_timeout,
        )
        ranked = rank(self.reference, self.radius_km, records)
        ranked, hits = await self._enrich(ranked)

        now = self.clock()
        logger.info(
            "Acquisition cycle succeeded: %s received, %s in range, %s enriched",
            len(records),
            len(ranked),
            hits,
            extra={"event": "cycle_succeeded"},
        )
        return Snapshot(
            aircraft=tuple(ranked),
            captured_at=now,
            outcome=Outcome.OK,
            last_success_at=now,
            received_count=len(records),
            enriched_count=hits,
        )

    async def _enrich(
        self, ranked: list[RankedAircraft]
    ) -> tuple[list[RankedAircraft], int]:
        if self.registry is None or not ranked:
            return ranked, 0

        try:
            decorated, hits = await asyncio.to_thread(
                self.registry.decorate, [item.aircraft for item in ranked]
            )
        except Exception as exc:
            logger.warning("Registry lookup failed; using raw states: %s", exc)
            return ranked, 0

        return [
            item.model_copy(update={"aircraft": aircraft})
            for item, aircraft in zip(ranked, decorated)
        ], hits

    def _failed(self, reason: str) -> Snapshot:
        previous = self.store.current()
        logger.warning(
            "Acquisition cycle failed: %s",
            reason,
            extra={"event": "cycle_failed"},
        )
        return Snapshot(
            aircraft=previous.aircraft,
            captured_at=self.clock(),
            outcome=Outcome.FAILED,
            error=reason,
            last_success_at=previous.last_success_at,
            received_count=previous.received_count,
            enriched_count=previous.enriched_count,
        )


__all__ = ["Acquirer", "AcquirerState", "Decorator", "Provider"]
