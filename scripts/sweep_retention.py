"""Cron entry point reclaiming superseded media whose retention elapsed."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from datetime import datetime, timezone

from src.schoolhub.config import load_config
from src.schoolhub.entities.entity_resources import RESOURCES
from src.schoolhub.media.retention_sweeper import RetentionSweeper
from src.schoolhub.media.slot_repository import MediaSlotRepository
from src.schoolhub.storage.object_keys import ObjectKeyResolver
from src.schoolhub.storage.storage_factory import create_storage


@dataclass(slots=True)
class SweepSummary:
    reclaimed: int
    skipped: int
    failed: int
    due: int
    dry_run: bool


def perform_sweep(*, dry_run: bool, reference_time: datetime | None = None) -> SweepSummary:
    """Execute one sweep and return summary counters."""
    config = load_config()
    storage = create_storage(config.storage)
    sweeper = RetentionSweeper(
        repo=MediaSlotRepository(config.session_factory),
        storage=storage,
        resources=RESOURCES,
        resolver=ObjectKeyResolver.for_storage(storage),
        batch_size=config.retention.sweep_batch_size,
    )
    now = reference_time or datetime.now(timezone.utc)
    report = asyncio.run(sweeper.sweep(now, dry_run=dry_run))
    return SweepSummary(
        reclaimed=report.reclaimed,
        skipped=report.skipped,
        failed=len(report.failed),
        due=len(report.due),
        dry_run=dry_run,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete superseded media past its retention window.")
    parser.add_argument("--dry-run", action="store_true", help="Only report due assets without deleting them.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or [])
    try:
        summary = perform_sweep(dry_run=args.dry_run)
    except Exception as exc:
        print(f"sweep failed: {exc}", file=sys.stderr)
        return 2

    if summary.dry_run:
        print(f"sweep dry-run, due={summary.due}", file=sys.stdout)
    else:
        print(
            f"sweep done, reclaimed={summary.reclaimed}, skipped={summary.skipped}, failed={summary.failed}",
            file=sys.stdout,
        )
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
