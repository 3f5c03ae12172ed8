from __future__ import annotations

from pathlib import Path

import pytest

from src.schoolhub.config import StorageSettings
from src.schoolhub.storage.local_storage import LocalObjectStorage
from src.schoolhub.storage.storage_base import StorageClient
from src.schoolhub.storage.storage_factory import create_storage
from src.schoolhub.storage.supabase_storage import SupabaseStorageClient


def _settings(**overrides) -> StorageSettings:
    values = dict(
        backend="local",
        media_root=Path("media"),
        public_base_url="http://localhost:8000/media",
        trash_prefix="spam",
    )
    values.update(overrides)
    return StorageSettings(**values)


def test_local_backend() -> None:
    storage = create_storage(_settings())

    assert isinstance(storage, LocalObjectStorage)
    assert isinstance(storage, StorageClient)


def test_supabase_backend() -> None:
    storage = create_storage(
        _settings(
            backend="supabase",
            supabase_url="https://proj.supabase.co",
            supabase_bucket="media",
            supabase_service_key="key",
            trash_prefix="trash",
        )
    )

    assert isinstance(storage, SupabaseStorageClient)
    assert storage.trash_prefix == "trash"


def test_supabase_backend_requires_credentials() -> None:
    with pytest.raises(ValueError, match="SUPABASE_BUCKET"):
        create_storage(_settings(backend="supabase", supabase_url="https://proj.supabase.co"))


def test_unknown_backend() -> None:
    with pytest.raises(ValueError, match="Unknown storage backend"):
        create_storage(_settings(backend="s3"))
