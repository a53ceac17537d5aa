"""Best-effort fan-out of save-queue events to attached listeners.

Observer pattern::

    DeliveryWorker ──publish()──> BroadcastNotifier ──callback()──> WebSocket handler (capture surface)
    SaveQueueService ──────────^                     ──callback()──> WebSocket handler (control panel)

Listeners are plain or async callables taking one
:data:`~knowledge_vault.models.events.QueueEvent`.  A listener that is not
attached when an event fires misses it: there is no log and no replay.
The durable queue store is the source of truth, and a listener that
attaches late rebuilds its view from ``SaveQueueService.get_summary()``.

Listener errors are logged and skipped so one closed socket cannot stop
delivery to the others or fail the delivery worker.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from knowledge_vault.models.events import QueueEvent
from knowledge_vault.utils.logging import get_logger


class BroadcastNotifier:
    """Publishes queue events to every currently subscribed listener."""

    def __init__(self) -> None:
        self._listeners: list[Callable] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, event: QueueEvent) -> None:
        """Deliver *event* to all listeners attached right now.

        Parameters
        ----------
        event:
            A ``SaveResultEvent`` or ``StateUpdateEvent``.
        """
        # Snapshot: listeners may unsubscribe from inside their callback.
        listeners = list(self._listeners)
        self._logger.debug("event_published", event_type=event.type, listeners=len(listeners))
        if not listeners:
            return

        for callback in listeners:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    event_type=event.type,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    def subscribe(self, callback: Callable) -> None:
        """Attach *callback*.  Subscribing the same callable twice is a no-op."""
        if callback not in self._listeners:
            self._listeners.append(callback)
            self._logger.debug("listener_subscribed", total_listeners=len(self._listeners))

    def unsubscribe(self, callback: Callable) -> None:
        """Detach *callback*.  No-op if it is not attached."""
        if callback in self._listeners:
            self._listeners.remove(callback)
            self._logger.debug("listener_unsubscribed", remaining_listeners=len(self._listeners))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
