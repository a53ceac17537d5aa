"""Broadcast events fanned out to capture surfaces and control panels.

Two event shapes exist:

* :class:`SaveResultEvent` -- terminal outcome for one queue entry.  The
  capture surface matches it to its "Saving..." indicator by ``queue_id``
  (and ``original_text`` for older surfaces that never saw the id).
* :class:`StateUpdateEvent` -- queue summary for control panels.  Also the
  response of ``get_summary()``, so a panel that attaches late builds the
  same view from the store that it would have built from events.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class SaveResultEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["SAVE_RESULT"] = "SAVE_RESULT"
    queue_id: str
    success: bool
    snippet_id: str | None = None
    error: str | None = None
    original_text: str = ""


class RecentItem(BaseModel):
    """A summarized queue entry as shown in the control panel."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    source_domain: str
    status: Literal["pending", "saved", "failed"]


class StateUpdateEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["STATE_UPDATE"] = "STATE_UPDATE"
    pending_count: int = 0
    recent_items: list[RecentItem] = Field(default_factory=list)


QueueEvent = Union[SaveResultEvent, StateUpdateEvent]
