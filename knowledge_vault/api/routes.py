"""FastAPI API routes for the Knowledge Vault save queue.

# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/captures                      POST    Submit a captured selection
# /api/v1/queue                         GET     Queue summary (pending count + recent items)
# /api/v1/queue/entries                 GET     Every queue entry, in enqueue order
# /api/v1/queue/{queue_id}/retry        POST    Manual retry of a pending/failed entry
# /api/v1/queue/{queue_id}              DELETE  Discard an entry
# /api/v1/queue/network-restored        POST    Connectivity is back; replay pending work
# /api/v1/health                        GET     Health check
#
# Service dependencies are read from ``app.state`` (populated at startup
# in main.py's _build_all) through ``Annotated[T, Depends(fn)]`` aliases.
# Unknown queue ids raise QueueEntryNotFoundError, which
# ErrorHandlingMiddleware turns into a 404.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from knowledge_vault import __version__
from knowledge_vault.api.schemas import (
    HealthResponse,
    QueueActionResponse,
    QueueEntriesResponse,
    QueueEntryResponse,
    SubmitCaptureRequest,
    SubmitCaptureResponse,
)
from knowledge_vault.interfaces.remote_store import IRemoteStoreClient
from knowledge_vault.models.events import StateUpdateEvent
from knowledge_vault.models.queue import RejectionReason
from knowledge_vault.services.save_queue import SaveQueueService
from knowledge_vault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Status code for each rejection reason of POST /captures.
_REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.TOO_SHORT: 422,
    RejectionReason.TOO_LONG: 422,
    RejectionReason.DUPLICATE: 422,
    RejectionReason.QUEUE_FULL: 507,
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_save_queue(request: Request) -> SaveQueueService:
    """Return the save-queue service from application state."""
    return request.app.state.save_queue


def _get_remote_store(request: Request) -> IRemoteStoreClient:
    return request.app.state.remote_store


SaveQueueDep = Annotated[SaveQueueService, Depends(_get_save_queue)]
RemoteStoreDep = Annotated[IRemoteStoreClient, Depends(_get_remote_store)]


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


@router.post("/captures", response_model=SubmitCaptureResponse, status_code=202)
async def submit_capture(body: SubmitCaptureRequest, save_queue: SaveQueueDep) -> JSONResponse:
    """Queue a captured selection for delivery.

    Returns 202 with the queue id as soon as the capture is durably
    queued; the delivery outcome is broadcast on ``/ws/queue``.
    Rejections return 422 (length, duplicate) or 507 (queue full) with
    ``accepted: false`` and a reason.
    """
    result = await save_queue.submit(
        text=body.text,
        source_url=body.source_url,
        source_title=body.source_title,
        source_domain=body.source_domain,
        context=body.context,
    )
    response = SubmitCaptureResponse(**result.model_dump())
    status_code = 202 if result.accepted else _REJECTION_STATUS[result.reason]
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Queue control
# ---------------------------------------------------------------------------


@router.get("/queue", response_model=StateUpdateEvent)
async def get_queue_summary(save_queue: SaveQueueDep) -> StateUpdateEvent:
    return await save_queue.get_summary()


@router.get("/queue/entries", response_model=QueueEntriesResponse)
async def list_queue_entries(save_queue: SaveQueueDep) -> QueueEntriesResponse:
    entries = await save_queue.list_entries()
    return QueueEntriesResponse(
        entries=[QueueEntryResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.post("/queue/network-restored", response_model=QueueActionResponse)
async def network_restored(save_queue: SaveQueueDep) -> QueueActionResponse:
    """Replay every pending and failed entry, staggered."""
    scheduled = await save_queue.network_restored()
    return QueueActionResponse(action="network_restored", scheduled=scheduled)


@router.post("/queue/{queue_id}/retry", response_model=QueueActionResponse, status_code=202)
async def retry_entry(queue_id: str, save_queue: SaveQueueDep) -> QueueActionResponse:
    await save_queue.retry(queue_id)
    _logger.info("manual_retry_requested", queue_id=queue_id)
    return QueueActionResponse(queue_id=queue_id, action="retry")


@router.delete("/queue/{queue_id}", response_model=QueueActionResponse)
async def discard_entry(queue_id: str, save_queue: SaveQueueDep) -> QueueActionResponse:
    await save_queue.discard(queue_id)
    return QueueActionResponse(queue_id=queue_id, action="discard")


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health_check(save_queue: SaveQueueDep, remote_store: RemoteStoreDep) -> HealthResponse:
    """Return application health, version, and the number of captures waiting."""
    summary = await save_queue.get_summary()
    return HealthResponse(
        status="healthy",
        version=__version__,
        pending_count=summary.pending_count,
        remote_store=remote_store.get_provider_name(),
    )
