"""Lifecycle helpers wiring background tasks for FastAPI startup."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from .media.retention_sweeper import RetentionSweeper, SweepReport


logger = logging.getLogger(__name__)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


async def retention_sweep_once(
    *,
    sweeper: RetentionSweeper,
    now: datetime | None = None,
) -> SweepReport:
    """Run a single retention sweep iteration and return its report."""

    return await sweeper.sweep(now or _default_clock())


async def run_periodic_retention_sweep(
    *,
    sweeper: RetentionSweeper,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 900.0,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Execute retention sweeps until ``shutdown_event`` is signalled."""

    interval = max(1.0, float(interval_seconds))
    tick = clock or _default_clock
    while not shutdown_event.is_set():
        try:
            report = await retention_sweep_once(sweeper=sweeper, now=tick())
        except Exception:  # pragma: no cover - keep the loop alive
            logger.exception("media.retention.iteration_failed")
        else:
            if report.failed:
                logger.warning(
                    "media.retention.pending_failures",
                    extra={"failed": len(report.failed)},
                )
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


__all__ = [
    "retention_sweep_once",
    "run_periodic_retention_sweep",
]
