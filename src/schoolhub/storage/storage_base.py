"""Storage collaborator contract shared by every backend."""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable

from starlette.datastructures import UploadFile

_SLUG_REPLACEMENTS = str.maketrans({" ": "-", "_": "-", "—": "-", "–": "-"})
_SLUG_ALLOWED = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True, slots=True)
class StoredObject:
    url: str
    object_key: str
    content_type: str
    size_bytes: int


@runtime_checkable
class StorageClient(Protocol):
    """Upload, relocate and delete objects addressed by key or public URL."""

    async def upload(
        self, upload: UploadFile, key_prefix: str, *, content_type: str | None = None
    ) -> StoredObject:
        ...

    async def move_to_trash(self, public_url: str, retention_days: int) -> str:
        """Relocate the object into the trash area and return its new URL."""
        ...

    async def restore_from_trash(self, object_key: str) -> None:
        """Move a trashed object back to its original key (no-op if absent)."""
        ...

    async def delete(self, object_key: str) -> None:
        """Remove the object and its trash twin; missing objects are fine."""
        ...

    def public_url(self, object_key: str) -> str:
        ...

    def parse_object_key(self, url: str) -> str | None:
        ...


def slugify(value: str) -> str:
    slug = value.strip().lower().translate(_SLUG_REPLACEMENTS)
    slug = _SLUG_ALLOWED.sub("", slug)
    return slug or "file"


def build_object_key(key_prefix: str, filename: str | None, *, now: datetime | None = None) -> str:
    """Return ``{prefix}/{slug}_{YYYYmmdd_HHMMSS}_{6 hex}{ext}``."""
    path = PurePosixPath(filename or "file")
    ext = path.suffix.lower()
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    name = f"{slugify(path.stem)}_{stamp}_{secrets.token_hex(3)}{ext}"
    prefix = key_prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def trash_key_for(object_key: str, trash_prefix: str) -> str:
    prefix = trash_prefix.strip("/")
    key = object_key.lstrip("/")
    if key.startswith(prefix + "/"):
        return key
    return f"{prefix}/{key}"


def original_key_for(object_key: str, trash_prefix: str) -> str:
    prefix = trash_prefix.strip("/") + "/"
    key = object_key.lstrip("/")
    return key[len(prefix):] if key.startswith(prefix) else key
