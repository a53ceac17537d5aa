"""Queue summary shown in control panels.

Built straight from the durable store every time, so a panel that attaches
after events have fired gets the same picture as one that saw them all.
"""

from __future__ import annotations

from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.models.events import RecentItem, StateUpdateEvent
from knowledge_vault.models.queue import QueueEntry, QueueStatus
from knowledge_vault.utils.text import preview


def _display_status(entry: QueueEntry) -> str:
    # In-flight is still "saving" from the user's point of view.
    return "failed" if entry.status is QueueStatus.FAILED else "pending"


async def build_summary(
    store: IQueueStore,
    recent_limit: int = 10,
    preview_chars: int = 100,
) -> StateUpdateEvent:
    """Return the pending count and the *recent_limit* newest entries.

    ``pending_count`` counts entries still being worked on (``pending``
    and ``in-flight``); failed entries wait for the user and are shown in
    ``recent_items`` only.
    """
    entries = await store.list_all()
    pending_count = sum(
        1 for e in entries if e.status in (QueueStatus.PENDING, QueueStatus.IN_FLIGHT)
    )
    recent = entries[-recent_limit:] if recent_limit > 0 else []
    return StateUpdateEvent(
        pending_count=pending_count,
        recent_items=[
            RecentItem(
                id=e.id,
                text=preview(e.payload.text, preview_chars),
                source_domain=e.payload.source_domain,
                status=_display_status(e),
            )
            for e in recent
        ],
    )
