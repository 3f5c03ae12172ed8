"""Filesystem-backed storage served under ``PUBLIC_MEDIA_BASE_URL``."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from starlette.datastructures import UploadFile

from ..media.media_errors import NotResolvableError, StorageError
from .object_keys import percent_decode
from .storage_base import StoredObject, build_object_key, original_key_for, trash_key_for

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB


@dataclass(slots=True)
class LocalObjectStorage:
    """Store objects as files below ``root``; trash lives under ``trash_prefix``."""

    root: Path
    public_base_url: str
    trash_prefix: str = "spam"
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def path_for(self, object_key: str) -> Path:
        root = self.root.resolve()
        target = (root / object_key.lstrip("/")).resolve()
        if root != target and root not in target.parents:
            raise StorageError(f"object key escapes storage root: {object_key}")
        return target

    def public_url(self, object_key: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{quote(object_key.lstrip('/'))}"

    def parse_object_key(self, url: str) -> str | None:
        base = self.public_base_url.rstrip("/") + "/"
        if not url.startswith(base):
            return None
        key = percent_decode(url[len(base):].split("?", 1)[0])
        return key or None

    async def upload(
        self, upload: UploadFile, key_prefix: str, *, content_type: str | None = None
    ) -> StoredObject:
        object_key = build_object_key(key_prefix, upload.filename)
        target = self.path_for(object_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        size = 0
        try:
            with target.open("wb") as sink:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    sink.write(chunk)
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise StorageError(f"failed to write {object_key}: {exc}") from exc
        finally:
            await upload.seek(0)
        self.log.info(
            "storage.local.uploaded",
            extra={"object_key": object_key, "size_bytes": size},
        )
        return StoredObject(
            url=self.public_url(object_key),
            object_key=object_key,
            content_type=content_type or upload.content_type or "application/octet-stream",
            size_bytes=size,
        )

    async def move_to_trash(self, public_url: str, retention_days: int) -> str:
        object_key = self.parse_object_key(public_url)
        if object_key is None:
            raise NotResolvableError(f"url is not served by local storage: {public_url}")
        source = self.path_for(object_key)
        trash_key = trash_key_for(object_key, self.trash_prefix)
        destination = self.path_for(trash_key)
        if not source.exists():
            if destination.exists():
                return self.public_url(trash_key)
            raise StorageError(f"object not found: {object_key}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.move(str(source), str(destination))
        except OSError as exc:
            raise StorageError(f"failed to move {object_key} to trash: {exc}") from exc
        self.log.info(
            "storage.local.trashed",
            extra={"object_key": object_key, "trash_key": trash_key, "retention_days": retention_days},
        )
        return self.public_url(trash_key)

    async def restore_from_trash(self, object_key: str) -> None:
        original = original_key_for(object_key, self.trash_prefix)
        source = self.path_for(trash_key_for(original, self.trash_prefix))
        destination = self.path_for(original)
        if not source.exists() or destination.exists():
            return
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.move(str(source), str(destination))
        except OSError as exc:
            raise StorageError(f"failed to restore {original}: {exc}") from exc

    async def delete(self, object_key: str) -> None:
        original = original_key_for(object_key, self.trash_prefix)
        for key in (original, trash_key_for(original, self.trash_prefix)):
            try:
                self.path_for(key).unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"failed to delete {key}: {exc}") from exc
        self.log.info("storage.local.deleted", extra={"object_key": original})
