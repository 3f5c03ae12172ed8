"""Domain-specific exceptions for the media slot lifecycle."""

from __future__ import annotations

from ..exceptions import AppError


class MediaSlotError(AppError):
    """Base class for media slot errors."""


class UnknownSlotError(MediaSlotError):
    """Raised when a resource does not declare the requested slot."""


class InvalidAssetError(MediaSlotError):
    """Raised when an explicit asset pointer cannot be accepted."""


class UploadFailedError(MediaSlotError):
    """Raised when the storage collaborator rejects an upload."""


class UnsupportedMediaError(UploadFailedError):
    """Raised when Content-Type is not allowed."""


class PayloadTooLargeError(UploadFailedError):
    """Raised when uploaded file exceeds configured limits."""


class NotResolvableError(MediaSlotError):
    """Raised when no strategy can derive an object key from a URL."""


class PersistFailedError(MediaSlotError):
    """Raised when the slot update could not be written."""


class SlotConflictError(PersistFailedError):
    """Raised when the row changed between read and write."""


class TrashMoveFailedError(MediaSlotError):
    """Moving a superseded asset into the trash area failed."""


class DeleteFailedError(MediaSlotError):
    """Physical deletion of an asset failed."""


class StorageError(MediaSlotError):
    """Raised by storage backends for transport or protocol failures."""


class SlotInvariantError(ValueError):
    """Raised when a slot state violates its structural invariants."""


class InvalidRetentionError(ValueError):
    """Raised for negative retention durations."""
