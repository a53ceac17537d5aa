"""Knowledge Vault FastAPI application entry point.

Wires the queue store, remote store client, scheduler, notifier, delivery
worker and save-queue service together and exposes them through the REST
routes and the ``/ws/queue`` WebSocket.  Loads configuration from ``.env``
and ``config/config.yaml`` and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from knowledge_vault import __version__
from knowledge_vault.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from knowledge_vault.api.routes import router as api_router
from knowledge_vault.api.websocket import websocket_queue
from knowledge_vault.config.loader import load_config
from knowledge_vault.config.settings import Settings
from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier
from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore
from knowledge_vault.providers.remote_store.http_remote_store import HttpRemoteStoreClient
from knowledge_vault.providers.scheduler.asyncio_scheduler import AsyncioScheduler
from knowledge_vault.services.delivery_worker import DeliveryWorker
from knowledge_vault.services.duplicate_filter import DuplicateFilter
from knowledge_vault.services.save_queue import SaveQueueService
from knowledge_vault.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    queue_config = app_config.get("queue", {})
    preview_chars = int(queue_config.get("preview_chars", app_settings.preview_chars))
    snippets_path = app_config.get("remote_store", {}).get("snippets_path", app_settings.remote_snippets_path)

    # -- Shared resources --
    # One pooled client for every remote call; closed last on shutdown.
    http_client = httpx.AsyncClient(timeout=app_settings.attempt_timeout)

    # -- Providers --
    queue_store = SQLiteQueueStore(
        db_path=app_settings.queue_db_path,
        max_size=app_settings.max_queue_size,
    )
    remote_store = HttpRemoteStoreClient(
        http_client=http_client,
        base_url=app_settings.remote_store_base_url,
        timeout=app_settings.attempt_timeout,
        snippets_path=snippets_path,
    )
    scheduler = AsyncioScheduler()

    # -- Services --
    notifier = BroadcastNotifier()
    # The worker and the service share one notifier, so WebSocket
    # listeners see producer-side summaries and delivery outcomes alike.
    worker = DeliveryWorker(
        store=queue_store,
        remote=remote_store,
        notifier=notifier,
        scheduler=scheduler,
        max_retries=app_settings.max_retries,
        base_retry_delay=app_settings.base_retry_delay,
        max_retry_delay=app_settings.max_retry_delay,
        attempt_timeout=app_settings.attempt_timeout,
        startup_stagger=app_settings.startup_stagger,
        recent_items_limit=app_settings.recent_items_limit,
        preview_chars=preview_chars,
    )
    duplicate_filter = DuplicateFilter(
        window_seconds=app_settings.duplicate_window_seconds,
        prefix_length=app_settings.duplicate_prefix_length,
    )
    save_queue = SaveQueueService(
        store=queue_store,
        worker=worker,
        notifier=notifier,
        duplicate_filter=duplicate_filter,
        min_capture_length=app_settings.min_capture_length,
        max_capture_length=app_settings.max_capture_length,
        recent_items_limit=app_settings.recent_items_limit,
        preview_chars=preview_chars,
    )

    return {
        "http_client": http_client,
        "queue_store": queue_store,
        "remote_store": remote_store,
        "scheduler": scheduler,
        "notifier": notifier,
        "delivery_worker": worker,
        "duplicate_filter": duplicate_filter,
        "save_queue": save_queue,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Open the queue and resume unfinished deliveries on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    save_queue: SaveQueueService = components["save_queue"]
    # Releases entries a previous process left in-flight and replays
    # pending/failed work, staggered, before the first request is served.
    resumed = await save_queue.start()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        remote_store=settings.remote_store_base_url,
        queue_db=settings.queue_db_path,
        resumed=resumed,
    )

    yield

    # -- Shutdown (order matters) --
    # 1. save_queue.stop(): cancel timers, wait for attempts in flight,
    #    then close the SQLite store.
    # 2. scheduler.aclose(): nothing left to run; drops stray handles.
    # 3. http_client.aclose(): no attempt can still be using it.
    await save_queue.stop()
    scheduler: AsyncioScheduler = components["scheduler"]
    await scheduler.aclose()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Queue store and HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Knowledge Vault API",
        version=__version__,
        description=(
            "Queue captured text selections durably and deliver them to the "
            "remote snippet store with retries, broadcasting every outcome "
            "to attached capture surfaces and control panels."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origins)

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/queue")
    async def ws_queue(websocket: WebSocket) -> None:
        await websocket_queue(websocket)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "knowledge_vault.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
