"""Dependency wiring helpers."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .api.errors import register_error_handlers
from .config import AppConfig
from .entities.entities_api import build_entity_routers
from .entities.entity_resources import RESOURCES
from .media.asset_replacement import AssetReplacementService
from .media.retention_sweeper import RetentionSweeper
from .media.slot_repository import MediaSlotRepository
from .media.upload_validation import UploadValidator
from .storage.object_keys import ObjectKeyResolver
from .storage.storage_base import StorageClient
from .storage.storage_factory import create_storage


def include_routers(
    app: FastAPI, config: AppConfig, *, storage: StorageClient | None = None
) -> None:
    """Mount entity routers and attach services to ``app.state``."""
    storage = storage or create_storage(config.storage)
    resolver = ObjectKeyResolver.for_storage(storage)
    slot_repository = MediaSlotRepository(config.session_factory)

    replacement_service = AssetReplacementService(
        repo=slot_repository,
        storage=storage,
        resolver=resolver,
        validator=UploadValidator(config.upload_limits),
        default_retention=config.retention.default_retention,
        upload_timeout_seconds=config.upload_limits.upload_timeout_seconds,
    )
    sweeper = RetentionSweeper(
        repo=slot_repository,
        storage=storage,
        resources=RESOURCES,
        resolver=resolver,
        batch_size=config.retention.sweep_batch_size,
    )

    app.state.config = config
    app.state.storage = storage
    app.state.slot_repository = slot_repository
    app.state.replacement_service = replacement_service
    app.state.retention_sweeper = sweeper

    register_error_handlers(app)
    for router in build_entity_routers():
        app.include_router(router)

    if config.storage.backend == "local":
        app.mount(
            "/media",
            StaticFiles(directory=config.storage.media_root, check_dir=False),
            name="media",
        )
