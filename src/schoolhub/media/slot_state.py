"""Dual-slot asset state stored on the owning entity row."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from .media_errors import SlotInvariantError

OVERDUE = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class AssetPointer:
    """Public URL plus the storage key it resolves to."""

    url: str
    object_key: str

    def same_object(self, other: "AssetPointer | None") -> bool:
        return other is not None and other.object_key == self.object_key


@dataclass(frozen=True, slots=True)
class SlotState:
    """Current asset, the last superseded one and its deletion deadline."""

    current: AssetPointer | None = None
    old: AssetPointer | None = None
    delete_pending_until: datetime | None = None

    @classmethod
    def from_columns(
        cls,
        *,
        url: str | None,
        object_key: str | None,
        url_old: str | None,
        object_key_old: str | None,
        delete_pending_until: datetime | None,
    ) -> "SlotState":
        """Build a state from raw nullable columns.

        A half-populated pair is treated as absent. An old asset without a
        deadline is considered due immediately so the sweeper reclaims it.
        """
        current = _pointer(url, object_key)
        old = _pointer(url_old, object_key_old)
        pending = delete_pending_until if old is not None else None
        if old is not None and pending is None:
            pending = OVERDUE
        return cls(current=current, old=old, delete_pending_until=pending)

    @property
    def current_url(self) -> str | None:
        return self.current.url if self.current else None

    @property
    def current_object_key(self) -> str | None:
        return self.current.object_key if self.current else None

    @property
    def old_url(self) -> str | None:
        return self.old.url if self.old else None

    @property
    def old_object_key(self) -> str | None:
        return self.old.object_key if self.old else None

    @property
    def is_empty(self) -> bool:
        return self.current is None and self.old is None

    def check(self) -> "SlotState":
        """Validate the pairing invariants and return ``self``."""
        for label, pointer in (("current", self.current), ("old", self.old)):
            if pointer is not None and (not pointer.url or not pointer.object_key):
                raise SlotInvariantError(f"{label} asset needs both url and object key")
        if (self.old is None) != (self.delete_pending_until is None):
            raise SlotInvariantError("delete_pending_until must be set exactly when an old asset exists")
        if self.current is not None and self.old is not None and self.current.url == self.old.url:
            raise SlotInvariantError("current and old asset must differ")
        return self

    def as_columns(self) -> dict[str, object]:
        return {
            "url": self.current_url,
            "object_key": self.current_object_key,
            "url_old": self.old_url,
            "object_key_old": self.old_object_key,
            "delete_pending_until": self.delete_pending_until,
        }


EMPTY_SLOT = SlotState()


def _pointer(url: str | None, object_key: str | None) -> AssetPointer | None:
    url = (url or "").strip()
    object_key = (object_key or "").strip()
    if not url or not object_key:
        return None
    return AssetPointer(url=url, object_key=object_key)
