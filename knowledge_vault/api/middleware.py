"""API middleware: CORS, request logging, and error handling.

# --- Execution order ------------------------------------------------
#
# Starlette middleware is a stack (last added, first executed).  main.py
# adds them as:
#
#     app.add_middleware(ErrorHandlingMiddleware)    # inner
#     app.add_middleware(RequestLoggingMiddleware)   # outer
#     configure_cors(app, ...)                       # outermost
#
#   Request:   client -> CORS -> RequestLogging -> ErrorHandling -> route
#   Response:  client <- CORS <- RequestLogging <- ErrorHandling <- route
#
# The request log therefore records the status code after an
# application error was turned into a JSON ``ErrorResponse``.
# ---------------------------------------------------------------------
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from knowledge_vault.api.schemas import ErrorResponse
from knowledge_vault.utils.errors import KnowledgeVaultError, QueueEntryNotFoundError
from knowledge_vault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Capture rejections never raise out of the service; the submit route
# answers them itself with a SubmitCaptureResponse (422 or 507).  Delivery
# errors stay inside the worker and surface only as broadcast events.
_STATUS_BY_ERROR: tuple[tuple[type[KnowledgeVaultError], int], ...] = (
    (QueueEntryNotFoundError, 404),
)


def status_for_error(exc: KnowledgeVaultError) -> int:
    """Return the HTTP status code for an application error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins, e.g. the capture extension's
        ``chrome-extension://<id>`` origin.  Defaults to ``["*"]``.
    """
    origins = allowed_origins or ["*"]
    # Browsers reject a wildcard origin on credentialed requests, so
    # credentials are only allowed with an explicit origin list.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``KnowledgeVaultError`` subclasses into JSON ``ErrorResponse`` bodies.

    The client sees the error class name and message only.  Other
    exceptions fall through to FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except KnowledgeVaultError as exc:
            status_code = status_for_error(exc)
            # 4xx is the caller's problem; 5xx is ours.
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
