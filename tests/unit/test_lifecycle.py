from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from src.schoolhub.lifecycle import retention_sweep_once, run_periodic_retention_sweep
from src.schoolhub.media.retention_sweeper import SweepReport

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class RecordingSweeper:
    def __init__(self, shutdown_event: asyncio.Event | None = None, *, stop_after: int = 1) -> None:
        self.calls: list[datetime] = []
        self.shutdown_event = shutdown_event
        self.stop_after = stop_after

    async def sweep(self, now: datetime, *, dry_run: bool = False) -> SweepReport:
        self.calls.append(now)
        if self.shutdown_event is not None and len(self.calls) >= self.stop_after:
            self.shutdown_event.set()
        return SweepReport(reclaimed=1)


@pytest.mark.asyncio
async def test_retention_sweep_once_passes_reference_time() -> None:
    sweeper = RecordingSweeper()

    report = await retention_sweep_once(sweeper=sweeper, now=NOW)

    assert report.reclaimed == 1
    assert sweeper.calls == [NOW]


@pytest.mark.asyncio
async def test_periodic_sweep_stops_on_shutdown_event() -> None:
    shutdown_event = asyncio.Event()
    sweeper = RecordingSweeper(shutdown_event, stop_after=1)

    await asyncio.wait_for(
        run_periodic_retention_sweep(
            sweeper=sweeper,
            shutdown_event=shutdown_event,
            interval_seconds=60,
            clock=lambda: NOW,
        ),
        timeout=1,
    )

    assert sweeper.calls == [NOW]


@pytest.mark.asyncio
async def test_periodic_sweep_survives_failing_iteration(monkeypatch) -> None:
    shutdown_event = asyncio.Event()
    attempts: list[datetime] = []

    class FlakySweeper:
        async def sweep(self, now: datetime, *, dry_run: bool = False) -> SweepReport:
            attempts.append(now)
            if len(attempts) == 1:
                raise RuntimeError("database unavailable")
            shutdown_event.set()
            return SweepReport()

    monkeypatch.setattr("src.schoolhub.lifecycle.asyncio.wait_for", _fast_wait_for)

    await run_periodic_retention_sweep(
        sweeper=FlakySweeper(),
        shutdown_event=shutdown_event,
        interval_seconds=60,
        clock=lambda: NOW,
    )

    assert len(attempts) == 2


_real_wait_for = asyncio.wait_for


async def _fast_wait_for(awaitable, timeout):
    return await _real_wait_for(awaitable, timeout=0.01)
