"""Pydantic models: queue entries, broadcast events, remote snippets."""

from knowledge_vault.models.events import QueueEvent, RecentItem, SaveResultEvent, StateUpdateEvent
from knowledge_vault.models.queue import (
    CapturePayload,
    QueueEntry,
    QueueStatus,
    RejectionReason,
    SubmitResult,
)
from knowledge_vault.models.snippet import CreatedSnippet

__all__ = [
    "CapturePayload",
    "CreatedSnippet",
    "QueueEntry",
    "QueueEvent",
    "QueueStatus",
    "RecentItem",
    "RejectionReason",
    "SaveResultEvent",
    "StateUpdateEvent",
    "SubmitResult",
]
