"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Sequence

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db


@dataclass(slots=True)
class StorageSettings:
    backend: str
    media_root: Path
    public_base_url: str
    trash_prefix: str
    supabase_url: str | None = None
    supabase_bucket: str | None = None
    supabase_service_key: str | None = None
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class UploadLimits:
    allowed_content_types: Sequence[str]
    max_upload_bytes: int
    chunk_size_bytes: int
    upload_timeout_seconds: float


@dataclass(slots=True)
class RetentionSettings:
    default_retention: timedelta
    sweep_enabled: bool
    sweep_interval_seconds: float
    sweep_batch_size: int


@dataclass(slots=True)
class AppConfig:
    storage: StorageSettings
    upload_limits: UploadLimits
    retention: RetentionSettings
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_storage_settings() -> StorageSettings:
    """Read storage backend settings from environment."""
    root = Path(os.getenv("MEDIA_ROOT", "media"))
    return StorageSettings(
        backend=os.getenv("STORAGE_BACKEND", "local").strip().lower(),
        media_root=root,
        public_base_url=os.getenv("PUBLIC_MEDIA_BASE_URL", "http://localhost:8000/media"),
        trash_prefix=os.getenv("STORAGE_TRASH_PREFIX", "spam").strip("/") or "spam",
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_bucket=os.getenv("SUPABASE_BUCKET"),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
        request_timeout_seconds=float(os.getenv("STORAGE_REQUEST_TIMEOUT_SECONDS", 30)),
    )


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    storage = load_storage_settings()
    if storage.backend == "local":
        storage.media_root.mkdir(parents=True, exist_ok=True)

    upload_limits = UploadLimits(
        allowed_content_types=("image/jpeg", "image/png", "image/webp", "image/gif"),
        max_upload_bytes=int(os.getenv("UPLOAD_MAX_BYTES", 5 * 1024 * 1024)),
        chunk_size_bytes=int(os.getenv("UPLOAD_CHUNK_SIZE_BYTES", 256 * 1024)),
        upload_timeout_seconds=float(os.getenv("UPLOAD_TIMEOUT_SECONDS", 45)),
    )

    retention = RetentionSettings(
        default_retention=timedelta(days=int(os.getenv("SLOT_RETENTION_DAYS", 30))),
        sweep_enabled=_env_flag("RETENTION_SWEEP_ENABLED", True),
        sweep_interval_seconds=float(os.getenv("RETENTION_SWEEP_INTERVAL_SECONDS", 15 * 60)),
        sweep_batch_size=int(os.getenv("RETENTION_SWEEP_BATCH_SIZE", 200)),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///schoolhub.db")
    engine = create_engine(database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        storage=storage,
        upload_limits=upload_limits,
        retention=retention,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
    )
