"""Pure state machine for replacing or clearing a dual-slot asset.

No I/O happens here: the caller persists :attr:`SlotTransition.state` and
then executes :attr:`SlotTransition.side_effects` against storage.

The old slot holds at most one asset. A second replacement arriving before
the first retention window elapsed therefore bumps the pending old asset out
with a ``DELETE_NOW`` effect instead of stacking history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Union

from .media_errors import InvalidRetentionError
from .slot_state import AssetPointer, SlotState

__all__ = [
    "ClearIntent",
    "ReplaceIntent",
    "SideEffect",
    "SideEffectKind",
    "SlotIntent",
    "SlotTransition",
    "compute_transition",
]


class SideEffectKind(str, Enum):
    RESTORE = "restore"
    MOVE_TO_TRASH = "move_to_trash"
    DELETE_NOW = "delete_now"


@dataclass(frozen=True, slots=True)
class SideEffect:
    kind: SideEffectKind
    asset: AssetPointer


@dataclass(frozen=True, slots=True)
class ReplaceIntent:
    asset: AssetPointer


@dataclass(frozen=True, slots=True)
class ClearIntent:
    pass


SlotIntent = Union[ReplaceIntent, ClearIntent]


@dataclass(frozen=True, slots=True)
class SlotTransition:
    previous: SlotState
    state: SlotState
    side_effects: tuple[SideEffect, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.state != self.previous

    @property
    def to_trash(self) -> AssetPointer | None:
        for effect in self.side_effects:
            if effect.kind is SideEffectKind.MOVE_TO_TRASH:
                return effect.asset
        return None

    @property
    def to_delete(self) -> tuple[AssetPointer, ...]:
        return tuple(
            effect.asset
            for effect in self.side_effects
            if effect.kind is SideEffectKind.DELETE_NOW
        )

    @property
    def to_restore(self) -> AssetPointer | None:
        for effect in self.side_effects:
            if effect.kind is SideEffectKind.RESTORE:
                return effect.asset
        return None


def compute_transition(
    current: SlotState,
    intent: SlotIntent,
    *,
    retention: timedelta,
    now: datetime,
) -> SlotTransition:
    """Return the next slot state and the storage effects it requires.

    ``retention`` of zero disables the grace period: a displaced asset is
    deleted right away instead of being parked in the old slot. Assets are
    identified by object key; the URL only has to stay distinct between the
    current and old pointer.
    """
    if retention < timedelta(0):
        raise InvalidRetentionError(f"retention must not be negative, got {retention}")

    if isinstance(intent, ClearIntent):
        if current.current is None:
            return SlotTransition(previous=current, state=current)
        return _displace(current, current.current, None, retention=retention, now=now)

    incoming = intent.asset
    existing = current.current
    if existing == incoming:
        return SlotTransition(previous=current, state=current)

    if existing is not None and existing.same_object(incoming):
        # Same stored object under a refreshed URL; nothing is displaced.
        return _settle(
            current,
            SlotState(
                current=incoming,
                old=current.old,
                delete_pending_until=current.delete_pending_until,
            ),
            [],
        )

    if existing is None:
        if incoming.same_object(current.old):
            return SlotTransition(
                previous=current,
                state=SlotState(current=incoming),
                side_effects=(SideEffect(SideEffectKind.RESTORE, incoming),),
            )
        return _settle(
            current,
            SlotState(
                current=incoming,
                old=current.old,
                delete_pending_until=current.delete_pending_until,
            ),
            [],
        )

    return _displace(current, existing, incoming, retention=retention, now=now)


def _displace(
    current: SlotState,
    displaced: AssetPointer,
    incoming: AssetPointer | None,
    *,
    retention: timedelta,
    now: datetime,
) -> SlotTransition:
    effects: list[SideEffect] = []
    old = current.old
    pending = current.delete_pending_until
    promoted = incoming is not None and incoming.same_object(old)
    if promoted:
        effects.append(SideEffect(SideEffectKind.RESTORE, incoming))

    if retention == timedelta(0):
        if promoted:
            old, pending = None, None
        effects.append(SideEffect(SideEffectKind.DELETE_NOW, displaced))
    else:
        effects.append(SideEffect(SideEffectKind.MOVE_TO_TRASH, displaced))
        if old is not None and not promoted:
            effects.append(SideEffect(SideEffectKind.DELETE_NOW, old))
        old, pending = displaced, now + retention

    state = SlotState(current=incoming, old=old, delete_pending_until=pending)
    return _settle(current, state, effects)


def _settle(
    previous: SlotState, state: SlotState, effects: list[SideEffect]
) -> SlotTransition:
    """Drop an old pointer whose URL collides with the new current one.

    The old object is deleted right away unless it is the current object.
    """
    current, old = state.current, state.old
    if current is not None and old is not None and current.url == old.url:
        effects = [
            effect
            for effect in effects
            if not (effect.kind is SideEffectKind.MOVE_TO_TRASH and effect.asset == old)
        ]
        purge = SideEffect(SideEffectKind.DELETE_NOW, old)
        if not old.same_object(current) and purge not in effects:
            effects.append(purge)
        state = SlotState(current=current)
    return SlotTransition(previous=previous, state=state, side_effects=tuple(effects))
