"""In-memory storage collaborator used across unit tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from starlette.datastructures import UploadFile

from src.schoolhub.media.media_errors import NotResolvableError, StorageError
from src.schoolhub.media.slot_state import AssetPointer
from src.schoolhub.storage.storage_base import StoredObject, build_object_key

BASE_URL = "https://proj.supabase.co/storage/v1/object/public/media"


@dataclass
class FakeStorage:
    base_url: str = BASE_URL
    objects: dict[str, bytes] = field(default_factory=dict)
    trash: dict[str, bytes] = field(default_factory=dict)
    content_types: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_uploads: bool = False
    fail_trash: bool = False
    fail_delete: set[str] = field(default_factory=set)
    upload_delay: float = 0.0

    def public_url(self, object_key: str) -> str:
        return f"{self.base_url}/{object_key}"

    def parse_object_key(self, url: str) -> str | None:
        prefix = self.base_url + "/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):] or None

    def seed(self, object_key: str, data: bytes = b"seed") -> AssetPointer:
        self.objects[object_key] = data
        return AssetPointer(url=self.public_url(object_key), object_key=object_key)

    def exists(self, object_key: str) -> bool:
        return object_key in self.objects

    async def upload(
        self, upload: UploadFile, key_prefix: str, *, content_type: str | None = None
    ) -> StoredObject:
        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        if self.fail_uploads:
            raise StorageError("upload rejected")
        object_key = build_object_key(key_prefix, upload.filename)
        data = await upload.read()
        await upload.seek(0)
        resolved_type = content_type or upload.content_type or "application/octet-stream"
        self.content_types[object_key] = resolved_type
        self.objects[object_key] = data
        self.calls.append(("upload", object_key))
        return StoredObject(
            url=self.public_url(object_key),
            object_key=object_key,
            content_type=resolved_type,
            size_bytes=len(data),
        )

    async def move_to_trash(self, public_url: str, retention_days: int) -> str:
        object_key = self.parse_object_key(public_url)
        if object_key is None:
            raise NotResolvableError(public_url)
        self.calls.append(("move_to_trash", object_key))
        if self.fail_trash:
            raise StorageError("trash unavailable")
        if object_key in self.objects:
            self.trash[object_key] = self.objects.pop(object_key)
        return self.public_url(f"spam/{object_key}")

    async def restore_from_trash(self, object_key: str) -> None:
        self.calls.append(("restore", object_key))
        if object_key in self.trash:
            self.objects[object_key] = self.trash.pop(object_key)

    async def delete(self, object_key: str) -> None:
        self.calls.append(("delete", object_key))
        if object_key in self.fail_delete:
            raise StorageError(f"cannot delete {object_key}")
        self.objects.pop(object_key, None)
        self.trash.pop(object_key, None)

    def called(self, operation: str) -> list[str]:
        return [key for op, key in self.calls if op == operation]
