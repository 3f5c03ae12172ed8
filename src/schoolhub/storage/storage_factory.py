"""Build the storage collaborator from configuration."""

from __future__ import annotations

from ..config import StorageSettings
from .local_storage import LocalObjectStorage
from .storage_base import StorageClient
from .supabase_storage import SupabaseStorageClient


def create_storage(settings: StorageSettings) -> StorageClient:
    """Return the storage backend named by ``settings.backend``."""
    if settings.backend == "local":
        return LocalObjectStorage(
            root=settings.media_root,
            public_base_url=settings.public_base_url,
            trash_prefix=settings.trash_prefix,
        )
    if settings.backend == "supabase":
        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", settings.supabase_url),
                ("SUPABASE_BUCKET", settings.supabase_bucket),
                ("SUPABASE_SERVICE_KEY", settings.supabase_service_key),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Supabase storage requires {', '.join(missing)}")
        return SupabaseStorageClient(
            base_url=settings.supabase_url,
            bucket=settings.supabase_bucket,
            service_key=settings.supabase_service_key,
            trash_prefix=settings.trash_prefix,
            timeout_seconds=settings.request_timeout_seconds,
        )
    raise ValueError(f"Unknown storage backend '{settings.backend}'")
