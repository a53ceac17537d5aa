"""Queue models for the save-queue delivery subsystem.

All models are frozen Pydantic v2 models.  State changes produce new
instances via ``model_copy(update={...})``; the durable store is the only
place an entry's current state lives.

Entry lifecycle::

    pending ──> in-flight ──> removed            (delivered)
                   │
                   ├──> pending                  (transient failure, retry scheduled)
                   └──> failed                   (terminal failure or retries exhausted)

A ``failed`` entry stays in the store until the user retries or discards it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QueueStatus(str, Enum):  # noqa: UP042
    """Delivery status of a queue entry.  There is no "done": success removes the entry."""

    PENDING = "pending"
    IN_FLIGHT = "in-flight"
    FAILED = "failed"


class RejectionReason(str, Enum):  # noqa: UP042
    """Why :meth:`SaveQueueService.submit` refused a capture."""

    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    DUPLICATE = "duplicate"
    QUEUE_FULL = "queue_full"


class CapturePayload(BaseModel):
    """The captured content.  Never mutated after enqueue."""

    model_config = ConfigDict(frozen=True)

    text: str
    source_url: str
    source_title: str = ""
    source_domain: str = ""
    # Surrounding text from the page, when the capture surface provides it.
    context: str | None = None


class QueueEntry(BaseModel):
    """One captured item awaiting or undergoing delivery."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    status: QueueStatus = QueueStatus.PENDING
    retry_count: int = Field(default=0, ge=0)
    last_error: str | None = None
    payload: CapturePayload


class SubmitResult(BaseModel):
    """Synchronous answer to a capture surface's submit request."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    queue_id: str | None = None
    reason: RejectionReason | None = None
    message: str | None = None

    @classmethod
    def accept(cls, queue_id: str) -> SubmitResult:
        return cls(accepted=True, queue_id=queue_id)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> SubmitResult:
        return cls(accepted=False, reason=reason, message=message)
