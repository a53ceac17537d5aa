"""WebSocket endpoint streaming save-queue broadcasts.

Capture surfaces and control panels attach to ``/ws/queue``::

    client                                server
    ──────                                ──────
    ws = new WebSocket(url)   ──────→   websocket.accept()
                                         notifier.subscribe(callback)
                              ←──────   STATE_UPDATE snapshot from the store
                              ←──────   SAVE_RESULT / STATE_UPDATE as they happen
    ws.close()                ──────→   WebSocketDisconnect
                                         notifier.unsubscribe(callback)

The notifier keeps no history, so the snapshot sent on attach is how a
late client catches up.  The listener is subscribed before the snapshot
is read, so nothing that happens in between is lost.
"""

from __future__ import annotations

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from knowledge_vault.models.events import QueueEvent
from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier
from knowledge_vault.services.save_queue import SaveQueueService
from knowledge_vault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


async def websocket_queue(websocket: WebSocket) -> None:
    """Forward every queue event to the connected client as JSON.

    Parameters
    ----------
    websocket:
        The WebSocket connection managed by FastAPI / Starlette.
    """
    notifier: BroadcastNotifier = websocket.app.state.notifier
    save_queue: SaveQueueService = websocket.app.state.save_queue

    await websocket.accept()
    _logger.info("websocket_connected")

    async def _on_event(event: QueueEvent) -> None:
        # Send failures propagate to the notifier, which logs them.
        await websocket.send_json(event.model_dump(mode="json"))

    notifier.subscribe(_on_event)

    try:
        summary = await save_queue.get_summary()
        await websocket.send_json(summary.model_dump(mode="json"))

        # Blocks until the client disconnects.
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected")

    finally:
        notifier.unsubscribe(_on_event)
        _logger.debug("websocket_listener_cleaned_up")
