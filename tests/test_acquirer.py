import asyncio
from datetime import datetime, timezone

import anyio
import pytest

from redwood.errors import FetchError
from redwood.models.air_traffic import AircraftRecord
from redwood.models.geo import Coordinate
from redwood.models.snapshot import Outcome
from redwood.services.acquirer import Acquirer, AcquirerState
from redwood.services.snapshot_store import SharedSnapshot

REFERENCE = Coordinate(latitude=0.0, longitude=0.0)
FIXED_NOW = datetime(2024, 5, 3, 19, 40, tzinfo=timezone.utc)


def _aircraft(icao: str, lon: float) -> AircraftRecord:
    return AircraftRecord(icao24=icao, position=Coordinate(latitude=0.0, longitude=lon))


class FakeProvider:
    def __init__(self, results=None, delay: float = 0.0):
        self.results = results or [[]]
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.cancelled = 0

    async def fetch_states(self, reference, radius_km):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        result = self.results[min(self.calls, len(self.results)) - 1]
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1
        if isinstance(result, Exception):
            raise result
        return result


class FakeRegistry:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.seen: list[str] = []

    def decorate(self, records):
        if self.fail:
            raise RuntimeError("database is locked")
        self.seen.extend(r.icao24 for r in records)
        decorated = [
            r.model_copy(update={"registration": "N12345", "operator": "United Airlines"})
            if r.icao24 == "abc001"
            else r
            for r in records
        ]
        return decorated, sum(1 for r in records if r.icao24 == "abc001")


def _acquirer(provider, store=None, **kwargs) -> Acquirer:
    options = {
        "radius_km": 200.0,
        "poll_interval": 0.05,
        "fetch_timeout": 1.0,
        "clock": lambda: FIXED_NOW,
    }
    options.update(kwargs)
    return Acquirer(
        provider=provider,
        store=store or SharedSnapshot(),
        reference=REFERENCE,
        **options,
    )


async def _run_for(acquirer: Acquirer, seconds: float) -> None:
    shutdown = asyncio.Event()
    task = asyncio.create_task(acquirer.run(shutdown))
    await asyncio.sleep(seconds)
    shutdown.set()
    with anyio.fail_after(2):
        await task


@pytest.mark.anyio
async def test_cycle_publishes_ranked_snapshot():
    provider = FakeProvider([[_aircraft("far001", 1.5), _aircraft("near01", 0.5), _aircraft("gone01", 5.0)]])
    store = SharedSnapshot()
    acquirer = _acquirer(provider, store)

    snapshot = await acquirer.run_cycle()

    assert store.current() is snapshot
    assert snapshot.outcome is Outcome.OK
    assert [item.icao24 for item in snapshot.aircraft] == ["near01", "far001"]
    assert snapshot.captured_at == FIXED_NOW
    assert snapshot.last_success_at == FIXED_NOW
    assert snapshot.received_count == 3
    assert snapshot.error is None
    assert acquirer.state is AcquirerState.IDLE


@pytest.mark.anyio
async def test_failed_cycle_retains_previous_aircraft():
    provider = FakeProvider([[_aircraft("near01", 0.5)], FetchError("provider returned HTTP 503")])
    store = SharedSnapshot()
    acquirer = _acquirer(provider, store)

    ok = await acquirer.run_cycle()
    failed = await acquirer.run_cycle()

    assert failed.outcome is Outcome.FAILED
    assert failed.aircraft == ok.aircraft
    assert failed.error == "provider returned HTTP 503"
    assert failed.last_success_at == ok.last_success_at
    assert store.current() is failed


@pytest.mark.anyio
async def test_failure_before_any_success_publishes_empty_failed_snapshot():
    provider = FakeProvider([FetchError("provider unreachable")])
    store = SharedSnapshot()

    snapshot = await _acquirer(provider, store).run_cycle()

    assert snapshot.outcome is Outcome.FAILED
    assert snapshot.aircraft == ()
    assert snapshot.last_success_at is None


@pytest.mark.anyio
async def test_slow_fetch_is_reported_as_timeout():
    provider = FakeProvider([[_aircraft("near01", 0.5)]], delay=0.5)
    acquirer = _acquirer(provider, fetch_timeout=0.05)

    with anyio.fail_after(2):
        snapshot = await acquirer.run_cycle()

    assert snapshot.outcome is Outcome.FAILED
    assert "timed out" in snapshot.error


@pytest.mark.anyio
async def test_unexpected_error_does_not_escape_the_cycle():
    provider = FakeProvider([ZeroDivisionError("boom")])

    snapshot = await _acquirer(provider).run_cycle()

    assert snapshot.outcome is Outcome.FAILED
    assert "boom" in snapshot.error


@pytest.mark.anyio
async def test_state_is_fetching_while_request_in_flight():
    provider = FakeProvider([[]], delay=0.1)
    acquirer = _acquirer(provider)

    task = asyncio.create_task(acquirer.run_cycle())
    await asyncio.sleep(0.02)
    assert acquirer.state is AcquirerState.FETCHING
    await task
    assert acquirer.state is AcquirerState.IDLE


@pytest.mark.anyio
async def test_run_polls_on_interval():
    provider = FakeProvider([[_aircraft("near01", 0.5)]])
    store = SharedSnapshot()
    acquirer = _acquirer(provider, store, poll_interval=0.05)

    await _run_for(acquirer, 0.28)

    assert provider.calls >= 3
    assert acquirer.skipped_ticks == 0
    assert store.current().outcome is Outcome.OK


@pytest.mark.anyio
async def test_run_skips_ticks_while_fetch_in_flight():
    provider = FakeProvider([[]], delay=0.18)
    acquirer = _acquirer(provider, poll_interval=0.05)

    await _run_for(acquirer, 0.5)

    assert provider.max_active == 1
    assert acquirer.skipped_ticks >= 2
    # Roughly one fetch per 0.2s, never one per tick
    assert provider.calls <= 4


@pytest.mark.anyio
async def test_run_keeps_going_after_failures():
    provider = FakeProvider([FetchError("down"), FetchError("down"), [_aircraft("near01", 0.5)]])
    store = SharedSnapshot()
    acquirer = _acquirer(provider, store, poll_interval=0.03)

    await _run_for(acquirer, 0.2)

    assert provider.calls >= 3
    assert store.current().outcome is Outcome.OK


@pytest.mark.anyio
async def test_shutdown_cancels_in_flight_fetch_promptly():
    provider = FakeProvider([[]], delay=30.0)
    store = SharedSnapshot()
    acquirer = _acquirer(provider, store, poll_interval=60.0, fetch_timeout=60.0)
    shutdown = asyncio.Event()

    task = asyncio.create_task(acquirer.run(shutdown))
    await asyncio.sleep(0.05)
    shutdown.set()
    with anyio.fail_after(1):
        await task

    assert provider.cancelled == 1
    assert store.current().outcome is Outcome.PENDING


@pytest.mark.anyio
async def test_cycle_enriches_from_registry():
    provider = FakeProvider([[_aircraft("abc001", 0.5), _aircraft("def002", 0.6), _aircraft("gone01", 9.0)]])
    registry = FakeRegistry()

    snapshot = await _acquirer(provider, registry=registry).run_cycle()

    assert registry.seen == ["abc001", "def002"]
    assert snapshot.enriched_count == 1
    assert snapshot.aircraft[0].aircraft.registration == "N12345"
    assert snapshot.aircraft[0].aircraft.operator == "United Airlines"
    assert snapshot.aircraft[1].aircraft.registration is None


@pytest.mark.anyio
async def test_registry_failure_falls_back_to_raw_states():
    provider = FakeProvider([[_aircraft("abc001", 0.5)]])

    snapshot = await _acquirer(provider, registry=FakeRegistry(fail=True)).run_cycle()

    assert snapshot.outcome is Outcome.OK
    assert snapshot.enriched_count == 0
    assert snapshot.aircraft[0].aircraft.registration is None


def test_acquirer_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        _acquirer(FakeProvider(), poll_interval=0)
