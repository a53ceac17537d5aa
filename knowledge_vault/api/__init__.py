"""Knowledge Vault API layer: routes, schemas, WebSocket, and middleware."""

from knowledge_vault.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from knowledge_vault.api.routes import router
from knowledge_vault.api.schemas import (
    ErrorResponse,
    HealthResponse,
    QueueEntriesResponse,
    SubmitCaptureRequest,
    SubmitCaptureResponse,
)
from knowledge_vault.api.websocket import websocket_queue

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "websocket_queue",
    "ErrorResponse",
    "HealthResponse",
    "QueueEntriesResponse",
    "SubmitCaptureRequest",
    "SubmitCaptureResponse",
]
