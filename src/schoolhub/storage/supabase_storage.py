"""Supabase Storage backend over the REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlsplit

import httpx
from starlette.datastructures import UploadFile

from ..media.media_errors import NotResolvableError, StorageError
from .object_keys import percent_decode
from .storage_base import StoredObject, build_object_key, original_key_for, trash_key_for

logger = logging.getLogger(__name__)

_OBJECT_PATH = "/storage/v1/object"
_URL_KINDS = ("public", "sign", "authenticated")


@dataclass(slots=True)
class SupabaseStorageClient:
    """Talk to ``{base_url}/storage/v1`` with a service role key."""

    base_url: str
    bucket: str
    service_key: str
    trash_prefix: str = "spam"
    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None
    log: logging.Logger = field(default_factory=lambda: logger)

    def public_url(self, object_key: str) -> str:
        return f"{self._root}/public/{self.bucket}/{quote(object_key.lstrip('/'))}"

    def parse_object_key(self, url: str) -> str | None:
        """Parse public, signed and authenticated object URLs of this bucket."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return None
        for kind in _URL_KINDS:
            prefix = f"{_OBJECT_PATH}/{kind}/"
            if not parts.path.startswith(prefix):
                continue
            decoded = percent_decode(parts.path[len(prefix):])
            if decoded is None:
                return None
            bucket, sep, key = decoded.partition("/")
            if sep and bucket == self.bucket and key:
                return key
            return None
        return None

    async def upload(
        self, upload: UploadFile, key_prefix: str, *, content_type: str | None = None
    ) -> StoredObject:
        object_key = build_object_key(key_prefix, upload.filename)
        payload = await upload.read()
        await upload.seek(0)
        content_type = content_type or upload.content_type or "application/octet-stream"
        response = await self._request(
            "POST",
            f"{self._root}/{self.bucket}/{quote(object_key)}",
            content=payload,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        self._raise_for_status(response, f"upload {object_key}")
        self.log.info(
            "storage.supabase.uploaded",
            extra={"object_key": object_key, "size_bytes": len(payload)},
        )
        return StoredObject(
            url=self.public_url(object_key),
            object_key=object_key,
            content_type=content_type,
            size_bytes=len(payload),
        )

    async def move_to_trash(self, public_url: str, retention_days: int) -> str:
        object_key = self.parse_object_key(public_url)
        if object_key is None:
            raise NotResolvableError(f"url does not belong to bucket {self.bucket}: {public_url}")
        trash_key = trash_key_for(object_key, self.trash_prefix)
        await self._move(object_key, trash_key)
        self.log.info(
            "storage.supabase.trashed",
            extra={"object_key": object_key, "trash_key": trash_key, "retention_days": retention_days},
        )
        return self.public_url(trash_key)

    async def restore_from_trash(self, object_key: str) -> None:
        original = original_key_for(object_key, self.trash_prefix)
        try:
            await self._move(trash_key_for(original, self.trash_prefix), original)
        except _ObjectMissing:
            return

    async def delete(self, object_key: str) -> None:
        original = original_key_for(object_key, self.trash_prefix)
        prefixes = [original, trash_key_for(original, self.trash_prefix)]
        response = await self._request(
            "DELETE",
            f"{self._root}/{self.bucket}",
            json={"prefixes": prefixes},
        )
        self._raise_for_status(response, f"delete {original}")
        self.log.info("storage.supabase.deleted", extra={"object_key": original})

    @property
    def _root(self) -> str:
        return f"{self.base_url.rstrip('/')}{_OBJECT_PATH}"

    async def _move(self, source_key: str, destination_key: str) -> None:
        response = await self._request(
            "POST",
            f"{self._root}/move",
            json={
                "bucketId": self.bucket,
                "sourceKey": source_key,
                "destinationKey": destination_key,
            },
        )
        if _is_missing(response):
            raise _ObjectMissing(source_key)
        self._raise_for_status(response, f"move {source_key}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        headers.update(kwargs.pop("headers", {}))
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                return await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            raise StorageError(
                f"storage {action} failed with status {response.status_code}: {response.text[:200]}"
            )


class _ObjectMissing(StorageError):
    pass


def _is_missing(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    if response.status_code != 400:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return str(body.get("statusCode")) == "404" or body.get("error") == "not_found"
