"""Request-facing orchestration of media slot replacement.

One call runs: upload (if a file is supplied) -> transition -> single UPDATE
of the owning row -> best-effort storage side effects. Only upload and
persist failures fail the call; everything after the commit is reported on
the returned outcome instead of raised.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from starlette.datastructures import UploadFile

from ..exceptions import ConcurrentUpdateError, NotFoundError, RepositoryError
from ..storage.object_keys import ObjectKeyResolver
from ..storage.storage_base import StorageClient, StoredObject
from .media_errors import (
    DeleteFailedError,
    InvalidAssetError,
    MediaSlotError,
    NotResolvableError,
    PersistFailedError,
    SlotConflictError,
    StorageError,
    TrashMoveFailedError,
    UploadFailedError,
)
from .slot_bindings import EntityResource, SlotBinding
from .slot_repository import LoadedEntity, MediaSlotRepository
from .slot_state import EMPTY_SLOT, AssetPointer, SlotState
from .slot_transition import (
    ClearIntent,
    ReplaceIntent,
    SlotIntent,
    SlotTransition,
    compute_transition,
)
from .upload_validation import UploadValidator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SlotRequest:
    """What the caller wants to happen to one slot.

    Precedence: ``upload`` over an explicit ``asset_url``/``asset_object_key``
    pair over ``clear``. An empty request leaves the slot untouched.
    """

    upload: UploadFile | None = None
    asset_url: str | None = None
    asset_object_key: str | None = None
    clear: bool = False
    retention: timedelta | None = None

    @property
    def is_noop(self) -> bool:
        return (
            self.upload is None
            and not self.asset_url
            and not self.asset_object_key
            and not self.clear
        )


@dataclass(slots=True)
class SlotUpdateOutcome:
    slot: str
    state: SlotState
    changed: bool = False
    uploaded_url: str | None = None
    moved_old_url: str | None = None
    deleted_keys: list[str] = field(default_factory=list)
    failures: list[MediaSlotError] = field(default_factory=list)


@dataclass(slots=True)
class EntityUpdateOutcome:
    entity: dict[str, Any]
    slots: dict[str, SlotUpdateOutcome] = field(default_factory=dict)

    @property
    def uploaded_image_url(self) -> str:
        return next((o.uploaded_url for o in self.slots.values() if o.uploaded_url), "")

    @property
    def moved_old_image_url(self) -> str:
        return next((o.moved_old_url for o in self.slots.values() if o.moved_old_url), "")

    @property
    def failures(self) -> list[MediaSlotError]:
        return [failure for outcome in self.slots.values() for failure in outcome.failures]


@dataclass(slots=True)
class AssetReplacementService:
    """Replace, clear and discard media slots of entity rows."""

    repo: MediaSlotRepository
    storage: StorageClient
    resolver: ObjectKeyResolver
    validator: UploadValidator
    default_retention: timedelta = timedelta(days=30)
    upload_timeout_seconds: float = 45.0
    clock: Callable[[], datetime] = _utcnow
    log: logging.Logger = field(default_factory=lambda: logger)

    async def replace(
        self,
        resource: EntityResource,
        entity_id: str,
        slot: str,
        *,
        upload: UploadFile | None = None,
        asset: AssetPointer | None = None,
        retention: timedelta | None = None,
        tenant_id: str | None = None,
        now: datetime | None = None,
    ) -> SlotUpdateOutcome:
        """Replace one slot; without a file or explicit asset the slot is cleared.

        ``asset.object_key`` may be empty, in which case it is derived from the
        URL and an unresolvable URL raises :class:`InvalidAssetError`.
        """
        request = SlotRequest(
            upload=upload,
            asset_url=asset.url if asset else None,
            asset_object_key=asset.object_key if asset else None,
            clear=upload is None and asset is None,
            retention=retention,
        )
        outcome = await self.update_entity(
            resource, entity_id, requests={slot: request}, tenant_id=tenant_id, now=now
        )
        return outcome.slots[slot]

    async def update_entity(
        self,
        resource: EntityResource,
        entity_id: str,
        *,
        requests: Mapping[str, SlotRequest] | None = None,
        fields: Mapping[str, Any] | None = None,
        tenant_id: str | None = None,
        now: datetime | None = None,
    ) -> EntityUpdateOutcome:
        """Apply slot requests and plain field changes as one row update."""
        now = (now or self.clock()).astimezone(timezone.utc)
        active = {
            name: request
            for name, request in (requests or {}).items()
            if not request.is_noop
        }
        bindings = {name: resource.slot(name) for name in active}
        loaded = self.repo.get(resource, entity_id, tenant_id=tenant_id)
        tenant = tenant_id
        if tenant is None and resource.tenant_column:
            tenant = loaded.row.get(resource.tenant_column)

        explicit = {
            name: self._explicit_asset(request)
            for name, request in active.items()
            if request.upload is None
        }
        uploaded = await self._upload_all(bindings, active, entity_id=entity_id, tenant_id=tenant)

        transitions: dict[str, SlotTransition] = {}
        retentions: dict[str, timedelta] = {}
        for name, binding in bindings.items():
            intent: SlotIntent
            if name in uploaded:
                stored = uploaded[name]
                intent = ReplaceIntent(AssetPointer(url=stored.url, object_key=stored.object_key))
            elif explicit.get(name) is not None:
                intent = ReplaceIntent(explicit[name])
            else:
                intent = ClearIntent()
            retention = active[name].retention
            if retention is None:
                retention = binding.retention_or(self.default_retention)
            retentions[name] = retention
            try:
                transitions[name] = compute_transition(
                    self.hydrate(loaded, binding), intent, retention=retention, now=now
                )
            except ValueError:
                await self._discard_uploads(uploaded.values())
                raise

        changed = {name: t.state for name, t in transitions.items() if t.changed}
        if changed or fields:
            row = await self._persist(
                resource,
                entity_id,
                loaded=loaded,
                slot_states=changed,
                fields=fields,
                tenant_id=tenant_id,
                now=now,
                uploaded=uploaded,
            )
        else:
            row = loaded.row

        outcomes: dict[str, SlotUpdateOutcome] = {}
        for name in resource.slot_names:
            if name not in transitions:
                continue
            stored = uploaded.get(name)
            outcomes[name] = await self._run_side_effects(
                resource,
                entity_id,
                name,
                transitions[name],
                retention=retentions[name],
                uploaded_url=stored.url if stored else None,
            )
        return EntityUpdateOutcome(entity=row, slots=outcomes)

    async def create_entity(
        self,
        resource: EntityResource,
        *,
        fields: Mapping[str, Any],
        requests: Mapping[str, SlotRequest] | None = None,
        tenant_id: str | None = None,
        now: datetime | None = None,
    ) -> EntityUpdateOutcome:
        """Insert a row with empty slots, then fill the requested slots.

        When filling the slots fails the freshly inserted row is removed again.
        """
        now = now or self.clock()
        row = self.repo.create(resource, fields, tenant_id=tenant_id, now=now)
        entity_id = row[resource.id_column]
        if not any(not request.is_noop for request in (requests or {}).values()):
            return EntityUpdateOutcome(entity=row)
        try:
            return await self.update_entity(
                resource, entity_id, requests=requests, tenant_id=tenant_id, now=now
            )
        except Exception:
            self.repo.delete(resource, entity_id, tenant_id=tenant_id)
            raise

    async def discard_entity(
        self,
        resource: EntityResource,
        entity_id: str,
        *,
        tenant_id: str | None = None,
    ) -> EntityUpdateOutcome:
        """Hard-delete the row; trash its current assets and delete old ones."""
        loaded = LoadedEntity(row=self.repo.delete(resource, entity_id, tenant_id=tenant_id), version=0)
        outcomes: dict[str, SlotUpdateOutcome] = {}
        for binding in resource.slots:
            state = self.hydrate(loaded, binding)
            if state.is_empty:
                continue
            outcome = SlotUpdateOutcome(slot=binding.name, state=EMPTY_SLOT, changed=True)
            if state.current is not None:
                retention = binding.retention_or(self.default_retention)
                await self._trash(outcome, state.current, retention, resource, entity_id)
            if state.old is not None:
                await self._delete(outcome, state.old, resource, entity_id)
            outcomes[binding.name] = outcome
        self.log.info(
            "media.entity.discarded",
            extra={"resource": resource.name, "entity_id": entity_id, "slots": sorted(outcomes)},
        )
        return EntityUpdateOutcome(entity=loaded.row, slots=outcomes)

    def hydrate(self, loaded: LoadedEntity, binding: SlotBinding) -> SlotState:
        """Build the slot state, resolving keys missing from legacy rows."""
        raw = loaded.raw_slot(binding)
        if raw["url"] and not raw["object_key"]:
            raw["object_key"] = self.resolver.try_resolve(raw["url"])
        if raw["url_old"] and not raw["object_key_old"]:
            raw["object_key_old"] = self.resolver.try_resolve(raw["url_old"])
        return SlotState.from_columns(**raw)

    def _explicit_asset(self, request: SlotRequest) -> AssetPointer | None:
        url = (request.asset_url or "").strip()
        key = (request.asset_object_key or "").strip()
        if not url and not key:
            return None
        if not url:
            url = self.storage.public_url(key)
        if not key:
            try:
                key = self.resolver.resolve(url)
            except NotResolvableError as exc:
                raise InvalidAssetError(f"object key required for {url}") from exc
        return AssetPointer(url=url, object_key=key)

    async def _upload_all(
        self,
        bindings: Mapping[str, SlotBinding],
        requests: Mapping[str, SlotRequest],
        *,
        entity_id: str,
        tenant_id: str | None,
    ) -> dict[str, StoredObject]:
        uploaded: dict[str, StoredObject] = {}
        try:
            for name, binding in bindings.items():
                upload = requests[name].upload
                if upload is None:
                    continue
                uploaded[name] = await self._upload(
                    binding, upload, entity_id=entity_id, tenant_id=tenant_id
                )
        except BaseException:
            await self._discard_uploads(uploaded.values())
            raise
        return uploaded

    async def _upload(
        self,
        binding: SlotBinding,
        upload: UploadFile,
        *,
        entity_id: str,
        tenant_id: str | None,
    ) -> StoredObject:
        validated = await self.validator.validate(upload)
        key_prefix = binding.render_key_prefix(entity_id=entity_id, tenant_id=tenant_id)
        try:
            stored = await asyncio.wait_for(
                self.storage.upload(upload, key_prefix, content_type=validated.content_type),
                timeout=self.upload_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            self.log.error(
                "media.upload.timeout",
                extra={"slot": binding.name, "entity_id": entity_id},
            )
            raise UploadFailedError(
                f"upload timed out after {self.upload_timeout_seconds:g}s"
            ) from exc
        except StorageError as exc:
            self.log.error(
                "media.upload.failed",
                extra={"slot": binding.name, "entity_id": entity_id, "error": str(exc)},
            )
            raise UploadFailedError(str(exc)) from exc
        self.log.info(
            "media.upload.stored",
            extra={"slot": binding.name, "entity_id": entity_id, "object_key": stored.object_key},
        )
        return stored

    async def _persist(
        self,
        resource: EntityResource,
        entity_id: str,
        *,
        loaded: LoadedEntity,
        slot_states: Mapping[str, SlotState],
        fields: Mapping[str, Any] | None,
        tenant_id: str | None,
        now: datetime,
        uploaded: Mapping[str, StoredObject],
    ) -> dict[str, Any]:
        try:
            row = self.repo.apply(
                resource,
                entity_id,
                expected_version=loaded.version,
                slot_states=slot_states,
                fields=fields,
                tenant_id=tenant_id,
                now=now,
            )
        except NotFoundError:
            await self._discard_uploads(uploaded.values())
            raise
        except ConcurrentUpdateError as exc:
            await self._discard_uploads(uploaded.values())
            raise SlotConflictError(str(exc)) from exc
        except RepositoryError as exc:
            await self._discard_uploads(uploaded.values())
            self.log.error(
                "media.slot.persist_failed",
                extra={"resource": resource.name, "entity_id": entity_id, "error": str(exc)},
            )
            raise PersistFailedError(str(exc)) from exc
        self.log.info(
            "media.slot.persisted",
            extra={
                "resource": resource.name,
                "entity_id": entity_id,
                "slots": sorted(slot_states),
                "version": row.get("version"),
            },
        )
        return row

    async def _run_side_effects(
        self,
        resource: EntityResource,
        entity_id: str,
        slot: str,
        transition: SlotTransition,
        *,
        retention: timedelta,
        uploaded_url: str | None,
    ) -> SlotUpdateOutcome:
        outcome = SlotUpdateOutcome(
            slot=slot,
            state=transition.state,
            changed=transition.changed,
            uploaded_url=uploaded_url,
        )
        restore = transition.to_restore
        if restore is not None:
            try:
                await self.storage.restore_from_trash(restore.object_key)
            except MediaSlotError as exc:
                self.log.warning(
                    "media.slot.restore_failed",
                    extra={"resource": resource.name, "entity_id": entity_id, "object_key": restore.object_key},
                )
                outcome.failures.append(exc)
        trash = transition.to_trash
        if trash is not None:
            await self._trash(outcome, trash, retention, resource, entity_id)
        for asset in transition.to_delete:
            await self._delete(outcome, asset, resource, entity_id)
        return outcome

    async def _trash(
        self,
        outcome: SlotUpdateOutcome,
        asset: AssetPointer,
        retention: timedelta,
        resource: EntityResource,
        entity_id: str,
    ) -> None:
        retention_days = max(1, math.ceil(retention.total_seconds() / 86400))
        try:
            outcome.moved_old_url = await self.storage.move_to_trash(asset.url, retention_days)
        except MediaSlotError as exc:
            self.log.warning(
                "media.slot.trash_failed",
                extra={
                    "resource": resource.name,
                    "entity_id": entity_id,
                    "slot": outcome.slot,
                    "url": asset.url,
                    "error": str(exc),
                },
            )
            failure = TrashMoveFailedError(f"could not move {asset.url} to trash: {exc}")
            failure.__cause__ = exc
            outcome.failures.append(failure)

    async def _delete(
        self,
        outcome: SlotUpdateOutcome,
        asset: AssetPointer,
        resource: EntityResource,
        entity_id: str,
    ) -> None:
        try:
            await self.storage.delete(asset.object_key)
        except MediaSlotError as exc:
            self.log.warning(
                "media.slot.delete_failed",
                extra={
                    "resource": resource.name,
                    "entity_id": entity_id,
                    "slot": outcome.slot,
                    "object_key": asset.object_key,
                    "error": str(exc),
                },
            )
            failure = DeleteFailedError(f"could not delete {asset.object_key}: {exc}")
            failure.__cause__ = exc
            outcome.failures.append(failure)
        else:
            outcome.deleted_keys.append(asset.object_key)

    async def _discard_uploads(self, uploaded: Iterable[StoredObject]) -> None:
        for stored in uploaded:
            try:
                await self.storage.delete(stored.object_key)
            except MediaSlotError:
                self.log.warning(
                    "media.upload.orphaned",
                    extra={"object_key": stored.object_key},
                )
