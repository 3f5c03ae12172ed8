"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .lifecycle import run_periodic_retention_sweep
from .logging import configure_logging
from .storage.storage_base import StorageClient

logger = logging.getLogger(__name__)


async def _start_retention_sweep(app: FastAPI, cfg: AppConfig) -> None:
    if not cfg.retention.sweep_enabled:
        logger.info("media.retention.disabled")
        return
    shutdown_event = asyncio.Event()
    task = asyncio.create_task(
        run_periodic_retention_sweep(
            sweeper=app.state.retention_sweeper,
            shutdown_event=shutdown_event,
            interval_seconds=cfg.retention.sweep_interval_seconds,
        ),
        name="schoolhub-retention-sweep",
    )
    app.state.retention_sweep_task = task
    app.state.retention_sweep_shutdown_event = shutdown_event


async def _stop_retention_sweep(app: FastAPI) -> None:
    shutdown_event = app.state.retention_sweep_shutdown_event
    if shutdown_event is not None:
        shutdown_event.set()
    task: asyncio.Task[None] | None = app.state.retention_sweep_task
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    app.state.retention_sweep_task = None
    app.state.retention_sweep_shutdown_event = None


def create_app(
    config: AppConfig | None = None, *, storage: StorageClient | None = None
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await _start_retention_sweep(app, cfg)
        try:
            yield
        finally:
            await _stop_retention_sweep(app)

    app = FastAPI(title="SchoolHub", lifespan=lifespan)
    include_routers(app, cfg, storage=storage)
    app.state.retention_sweep_task = None
    app.state.retention_sweep_shutdown_event = None

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
