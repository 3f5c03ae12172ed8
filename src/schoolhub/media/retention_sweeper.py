"""Reclaim superseded assets whose retention window has elapsed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

import structlog

from ..exceptions import RepositoryError
from ..storage.object_keys import ObjectKeyResolver
from ..storage.storage_base import StorageClient
from .media_errors import MediaSlotError
from .slot_bindings import EntityResource
from .slot_repository import MediaSlotRepository, PendingDeletion

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class SweepReport:
    reclaimed: int = 0
    skipped: int = 0
    failed: list[PendingDeletion] = field(default_factory=list)
    due: list[PendingDeletion] = field(default_factory=list)
    dry_run: bool = False

    def merge(self, other: "SweepReport") -> None:
        self.reclaimed += other.reclaimed
        self.skipped += other.skipped
        self.failed.extend(other.failed)
        self.due.extend(other.due)


@dataclass(slots=True)
class RetentionSweeper:
    """Delete due old assets and clear the slot columns that pointed at them.

    Each row is handled on its own: a storage failure leaves the row pending
    for the next sweep, and a row that changed since it was listed is skipped.
    """

    repo: MediaSlotRepository
    storage: StorageClient
    resources: Sequence[EntityResource]
    resolver: ObjectKeyResolver
    batch_size: int = 200

    async def sweep(self, now: datetime | None = None, *, dry_run: bool = False) -> SweepReport:
        reference = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        report = SweepReport(dry_run=dry_run)
        for resource in self.resources:
            for binding in resource.slots:
                report.merge(await self._sweep_slot(resource, binding, reference, dry_run=dry_run))
        if report.reclaimed or report.failed or report.skipped:
            logger.info(
                "media.retention.swept",
                reclaimed=report.reclaimed,
                skipped=report.skipped,
                failed=len(report.failed),
                dry_run=dry_run,
            )
        return report

    async def _sweep_slot(self, resource, binding, reference: datetime, *, dry_run: bool) -> SweepReport:
        report = SweepReport(dry_run=dry_run)
        if dry_run:
            report.due = self.repo.list_due(resource, binding, reference)
            return report

        # Failed rows stay due; they are remembered so the loop still terminates.
        attempted: set[str] = set()
        while True:
            batch = [
                pending
                for pending in self.repo.list_due(
                    resource, binding, reference, limit=self.batch_size + len(attempted)
                )
                if pending.entity_id not in attempted
            ]
            if not batch:
                return report
            for pending in batch:
                attempted.add(pending.entity_id)
                await self._reclaim(resource, binding, pending, reference, report)

    async def _reclaim(self, resource, binding, pending: PendingDeletion, reference, report) -> None:
        object_key = pending.object_key or self.resolver.try_resolve(pending.url)
        if object_key:
            try:
                await self.storage.delete(object_key)
            except MediaSlotError as exc:
                logger.warning(
                    "media.retention.delete_failed",
                    resource=resource.name,
                    slot=binding.name,
                    entity_id=pending.entity_id,
                    object_key=object_key,
                    error=str(exc),
                )
                report.failed.append(pending)
                return
        else:
            logger.warning(
                "media.retention.unresolvable",
                resource=resource.name,
                entity_id=pending.entity_id,
                url=pending.url,
            )

        try:
            cleared = self.repo.clear_old(resource, binding, pending, reference)
        except RepositoryError as exc:
            logger.error(
                "media.retention.clear_failed",
                resource=resource.name,
                entity_id=pending.entity_id,
                error=str(exc),
            )
            report.failed.append(pending)
            return
        if cleared:
            report.reclaimed += 1
        else:
            report.skipped += 1
