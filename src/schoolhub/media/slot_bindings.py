"""Column accessors tying a logical media slot to its owning table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from pydantic import BaseModel

from .media_errors import UnknownSlotError
from .slot_state import SlotState

_SLOT_SUFFIXES = ("url", "object_key", "url_old", "object_key_old", "delete_pending_until")


@dataclass(frozen=True, slots=True)
class SlotBinding:
    """One logical asset slot stored as five ``{column_prefix}_*`` columns.

    ``key_prefix`` is the storage directory for fresh uploads; it may refer to
    ``{entity_id}`` and ``{tenant_id}``. ``retention`` overrides the
    configured default when set.
    """

    name: str
    column_prefix: str
    key_prefix: str
    retention: timedelta | None = None

    def column(self, suffix: str) -> str:
        if suffix not in _SLOT_SUFFIXES:
            raise KeyError(suffix)
        return f"{self.column_prefix}_{suffix}"

    def read_raw(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Return the raw slot columns keyed by suffix."""
        return {suffix: row.get(self.column(suffix)) for suffix in _SLOT_SUFFIXES}

    def values(self, state: SlotState) -> dict[str, Any]:
        """Map a slot state onto column assignments."""
        return {self.column(suffix): value for suffix, value in state.as_columns().items()}

    def render_key_prefix(self, *, entity_id: str, tenant_id: str | None = None) -> str:
        return self.key_prefix.format(
            entity_id=entity_id,
            tenant_id=tenant_id or "global",
            slot=self.name,
        )

    def retention_or(self, default: timedelta) -> timedelta:
        return self.retention if self.retention is not None else default


@dataclass(frozen=True, slots=True)
class EntityResource:
    """A table whose rows own one or more media slots."""

    name: str
    label: str
    model: type
    id_column: str
    slots: tuple[SlotBinding, ...]
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    tenant_column: str | None = None

    def slot(self, name: str) -> SlotBinding:
        for binding in self.slots:
            if binding.name == name:
                return binding
        raise UnknownSlotError(f"{self.name} has no media slot '{name}'")

    @property
    def slot_names(self) -> tuple[str, ...]:
        return tuple(binding.name for binding in self.slots)
