"""Persistence for entity rows that carry media slots."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..exceptions import ConcurrentUpdateError, NotFoundError, handle_sqlalchemy_errors
from .slot_bindings import EntityResource, SlotBinding
from .slot_state import SlotState


@dataclass(frozen=True, slots=True)
class LoadedEntity:
    row: dict[str, Any]
    version: int

    def raw_slot(self, binding: SlotBinding) -> dict[str, Any]:
        return binding.read_raw(self.row)


@dataclass(frozen=True, slots=True)
class PendingDeletion:
    """An old asset whose retention deadline has elapsed."""

    resource: str
    slot: str
    entity_id: str
    url: str | None
    object_key: str | None
    delete_pending_until: datetime


class MediaSlotRepository:
    """Read and write slot columns together with the rest of the row."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        resource: EntityResource,
        fields: Mapping[str, Any],
        *,
        tenant_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Insert a row with empty slots and return it as a mapping."""
        entity_id = uuid.uuid4().hex
        stamp = now or datetime.now(timezone.utc)
        values = dict(fields)
        values[resource.id_column] = entity_id
        if resource.tenant_column:
            if tenant_id is None:
                raise ValueError(f"{resource.name} rows require a tenant id")
            values[resource.tenant_column] = tenant_id
        values.update(version=1, created_at=stamp, updated_at=stamp)
        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                model = resource.model(**values)
                session.add(model)
                session.commit()
                session.refresh(model)
                return _to_mapping(model)

    def get(
        self, resource: EntityResource, entity_id: str, *, tenant_id: str | None = None
    ) -> LoadedEntity:
        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                model = self._fetch(session, resource, entity_id, tenant_id)
                row = _to_mapping(model)
                return LoadedEntity(row=row, version=row["version"])

    def apply(
        self,
        resource: EntityResource,
        entity_id: str,
        *,
        expected_version: int,
        slot_states: Mapping[str, SlotState],
        fields: Mapping[str, Any] | None = None,
        tenant_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Write slot states and plain fields in one UPDATE statement.

        The statement is conditioned on ``version``; a concurrent writer makes
        it match zero rows and :class:`ConcurrentUpdateError` is raised.
        """
        model = resource.model
        values: dict[str, Any] = dict(fields or {})
        for slot_name, state in slot_states.items():
            values.update(resource.slot(slot_name).values(state.check()))
        values["updated_at"] = now or datetime.now(timezone.utc)
        values["version"] = model.version + 1

        criteria = [
            getattr(model, resource.id_column) == entity_id,
            model.version == expected_version,
        ]
        if resource.tenant_column and tenant_id is not None:
            criteria.append(getattr(model, resource.tenant_column) == tenant_id)

        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                result = session.execute(
                    update(model).where(*criteria).values(**values),
                    execution_options={"synchronize_session": False},
                )
                if result.rowcount != 1:
                    session.rollback()
                    self._fetch(session, resource, entity_id, tenant_id)
                    raise ConcurrentUpdateError(
                        f"{resource.label} '{entity_id}' changed since version {expected_version}"
                    )
                session.commit()
                return _to_mapping(self._fetch(session, resource, entity_id, tenant_id))

    def delete(
        self, resource: EntityResource, entity_id: str, *, tenant_id: str | None = None
    ) -> dict[str, Any]:
        """Hard-delete the row and return its last state."""
        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                model = self._fetch(session, resource, entity_id, tenant_id)
                row = _to_mapping(model)
                session.delete(model)
                session.commit()
                return row

    def list_due(
        self,
        resource: EntityResource,
        binding: SlotBinding,
        reference_time: datetime,
        *,
        limit: int | None = None,
    ) -> list[PendingDeletion]:
        model = resource.model
        id_col = getattr(model, resource.id_column)
        pending_col = getattr(model, binding.column("delete_pending_until"))
        stmt = (
            select(
                id_col,
                getattr(model, binding.column("url_old")),
                getattr(model, binding.column("object_key_old")),
                pending_col,
            )
            .where(pending_col.is_not(None), pending_col <= reference_time)
            .order_by(pending_col, id_col)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                rows = session.execute(stmt).all()
        return [
            PendingDeletion(
                resource=resource.name,
                slot=binding.name,
                entity_id=entity_id,
                url=url_old,
                object_key=key_old,
                delete_pending_until=_as_utc(pending),
            )
            for entity_id, url_old, key_old, pending in rows
        ]

    def clear_old(
        self,
        resource: EntityResource,
        binding: SlotBinding,
        pending: PendingDeletion,
        reference_time: datetime,
    ) -> bool:
        """Clear the old slot if it still holds ``pending`` and is still due.

        ``version`` is left alone so in-flight replacements are not rejected.
        """
        model = resource.model
        pending_col = getattr(model, binding.column("delete_pending_until"))
        url_col = getattr(model, binding.column("url_old"))
        key_col = getattr(model, binding.column("object_key_old"))
        criteria = [
            getattr(model, resource.id_column) == pending.entity_id,
            pending_col.is_not(None),
            pending_col <= reference_time,
            url_col.is_(None) if pending.url is None else url_col == pending.url,
            key_col.is_(None) if pending.object_key is None else key_col == pending.object_key,
        ]
        with handle_sqlalchemy_errors(entity=resource.label):
            with self._session_factory() as session:
                result = session.execute(
                    update(model)
                    .where(*criteria)
                    .values({url_col: None, key_col: None, pending_col: None}),
                    execution_options={"synchronize_session": False},
                )
                session.commit()
                return result.rowcount == 1

    @staticmethod
    def _fetch(
        session: Session,
        resource: EntityResource,
        entity_id: str,
        tenant_id: str | None,
    ):
        model = session.get(resource.model, entity_id, populate_existing=True)
        if model is None:
            raise NotFoundError(f"{resource.label} '{entity_id}' not found")
        if resource.tenant_column and tenant_id is not None:
            if getattr(model, resource.tenant_column) != tenant_id:
                raise NotFoundError(f"{resource.label} '{entity_id}' not found")
        return model


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_mapping(model) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for column in model.__table__.columns:
        value = getattr(model, column.key)
        row[column.key] = _as_utc(value) if isinstance(value, datetime) else value
    return row
