"""Pydantic request/response schemas for the Knowledge Vault API.

Capture surfaces send camelCase JSON (``sourceUrl``, ``sourceTitle``), so
request fields accept both the camelCase alias and the snake_case name.
Responses are snake_case.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from knowledge_vault.models.queue import QueueEntry, RejectionReason


class SubmitCaptureRequest(BaseModel):
    """A captured selection submitted by a capture surface."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    source_url: str = Field(..., alias="sourceUrl", min_length=1)
    source_title: str = Field(default="", alias="sourceTitle")
    source_domain: str | None = Field(default=None, alias="sourceDomain")
    context: str | None = None


class SubmitCaptureResponse(BaseModel):
    accepted: bool
    queue_id: str | None = None
    reason: RejectionReason | None = None
    message: str | None = None


class QueueEntryResponse(BaseModel):
    """One queue entry as listed by ``GET /queue/entries``."""

    id: str
    created_at: datetime
    status: str
    retry_count: int
    last_error: str | None = None
    text: str
    source_url: str
    source_title: str
    source_domain: str

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> QueueEntryResponse:
        return cls(
            id=entry.id,
            created_at=entry.created_at,
            status=entry.status.value,
            retry_count=entry.retry_count,
            last_error=entry.last_error,
            text=entry.payload.text,
            source_url=entry.payload.source_url,
            source_title=entry.payload.source_title,
            source_domain=entry.payload.source_domain,
        )


class QueueEntriesResponse(BaseModel):
    entries: list[QueueEntryResponse] = Field(default_factory=list)
    total: int = 0


class QueueActionResponse(BaseModel):
    """Acknowledgement of a retry, discard, or network-restored signal."""

    queue_id: str | None = None
    action: str
    scheduled: int | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    pending_count: int
    remote_store: str


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
