from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.schoolhub.media.media_errors import NotResolvableError, StorageError
from src.schoolhub.storage.local_storage import LocalObjectStorage
from src.schoolhub.storage.storage_base import build_object_key, original_key_for, trash_key_for
from tests.helpers.media import PNG_BYTES, make_upload

BASE_URL = "http://localhost:8000/media"


@pytest.fixture()
def local_storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(root=tmp_path, public_base_url=BASE_URL)


def test_build_object_key_has_slug_timestamp_and_suffix() -> None:
    key = build_object_key(
        "schools/42/images/icon",
        "My School Logo.PNG",
        now=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )

    prefix, _, name = key.rpartition("/")
    assert prefix == "schools/42/images/icon"
    assert name.startswith("my-school-logo_20260102_030405_")
    assert name.endswith(".png")
    assert len(name.split("_")[-1]) == len("abcdef.png")


def test_trash_key_helpers_are_inverse() -> None:
    assert trash_key_for("a/b.png", "spam") == "spam/a/b.png"
    assert trash_key_for("spam/a/b.png", "spam") == "spam/a/b.png"
    assert original_key_for("spam/a/b.png", "spam") == "a/b.png"
    assert original_key_for("a/b.png", "spam") == "a/b.png"


@pytest.mark.asyncio
async def test_upload_writes_file_and_returns_public_url(local_storage, tmp_path) -> None:
    stored = await local_storage.upload(make_upload(), "schools/1/images/icon")

    assert stored.url == f"{BASE_URL}/{stored.object_key}"
    assert (tmp_path / stored.object_key).read_bytes() == PNG_BYTES
    assert stored.size_bytes == len(PNG_BYTES)
    assert local_storage.parse_object_key(stored.url) == stored.object_key


@pytest.mark.asyncio
async def test_move_to_trash_and_restore(local_storage, tmp_path) -> None:
    stored = await local_storage.upload(make_upload(), "posts")

    trash_url = await local_storage.move_to_trash(stored.url, 30)

    assert trash_url == f"{BASE_URL}/spam/{stored.object_key}"
    assert not (tmp_path / stored.object_key).exists()
    assert (tmp_path / "spam" / stored.object_key).exists()
    # Retrying after a successful move is harmless.
    assert await local_storage.move_to_trash(stored.url, 30) == trash_url

    await local_storage.restore_from_trash(stored.object_key)

    assert (tmp_path / stored.object_key).exists()
    assert not (tmp_path / "spam" / stored.object_key).exists()


@pytest.mark.asyncio
async def test_delete_removes_original_and_trash_copy(local_storage, tmp_path) -> None:
    stored = await local_storage.upload(make_upload(), "books")
    await local_storage.move_to_trash(stored.url, 7)

    await local_storage.delete(stored.object_key)
    await local_storage.delete(stored.object_key)

    assert not (tmp_path / "spam" / stored.object_key).exists()
    assert not (tmp_path / stored.object_key).exists()


@pytest.mark.asyncio
async def test_move_to_trash_rejects_foreign_url(local_storage) -> None:
    with pytest.raises(NotResolvableError):
        await local_storage.move_to_trash("https://elsewhere.test/a.png", 30)


@pytest.mark.asyncio
async def test_move_to_trash_of_missing_object_fails(local_storage) -> None:
    with pytest.raises(StorageError):
        await local_storage.move_to_trash(f"{BASE_URL}/posts/missing.png", 30)


def test_path_for_blocks_traversal(local_storage) -> None:
    with pytest.raises(StorageError):
        local_storage.path_for("../../etc/passwd")
