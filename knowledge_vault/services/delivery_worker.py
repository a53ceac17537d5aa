"""Delivery worker: drains the save queue into the remote snippet store.

Per-entry state machine::

    pending ──trigger──> in-flight ──success──────────────────────> removed
                            │
                            ├─ transient error, retry_count < max ──> pending  (+ backoff timer)
                            └─ terminal error, or retries exhausted ─> failed   (until retry/discard)

Backoff before retry number ``n + 1`` is
``min(base_retry_delay * 2**n, max_retry_delay)`` where ``n`` is the
entry's retry count before the failed attempt.  Every attempt is bounded
by ``attempt_timeout``; when it expires the request is cancelled and the
failure counts as transient.

Concurrency model: everything runs on one event loop.  ``_in_flight`` is
the set of ids with an attempt underway and ``_timers`` holds the one
scheduled trigger (hand-off, backoff, or recovery replay) per id.  A
trigger for an id already in flight is ignored.  Scheduled callbacks
re-read the entry from the store before acting, because it may have been
discarded or retried by hand in the meantime.
"""

from __future__ import annotations

import asyncio
from functools import partial

import structlog

from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.interfaces.remote_store import IRemoteStoreClient
from knowledge_vault.interfaces.scheduler import IScheduledCall, IScheduler
from knowledge_vault.models.events import SaveResultEvent
from knowledge_vault.models.queue import QueueEntry, QueueStatus
from knowledge_vault.models.snippet import CreatedSnippet
from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier
from knowledge_vault.services.queue_summary import build_summary
from knowledge_vault.utils.errors import DeliveryError, TerminalDeliveryError, TransientDeliveryError
from knowledge_vault.utils.logging import get_logger

_BACKOFF_ONLY = frozenset({QueueStatus.PENDING})
_REDELIVERABLE = frozenset({QueueStatus.PENDING, QueueStatus.FAILED})


class DeliveryWorker:
    """Attempts delivery of queue entries with bounded retries and backoff.

    Parameters
    ----------
    store:
        Durable queue; the worker only changes status, retry count and
        last error of entries it is currently attempting.
    remote:
        Remote snippet store client.
    notifier:
        Receives a ``SaveResultEvent`` for every terminal outcome and a
        ``StateUpdateEvent`` for every status change.
    scheduler:
        Timer source for backoff, immediate hand-off and staggered replay.
    max_retries:
        Automatic retries after the first attempt.
    base_retry_delay, max_retry_delay:
        Exponential backoff parameters, in seconds.
    attempt_timeout:
        Hard deadline per attempt, in seconds.
    startup_stagger:
        Gap between replayed entries in :meth:`resume_pending`.
    recent_items_limit, preview_chars:
        Shape of the broadcast queue summary.
    """

    def __init__(
        self,
        store: IQueueStore,
        remote: IRemoteStoreClient,
        notifier: BroadcastNotifier,
        scheduler: IScheduler,
        *,
        max_retries: int = 3,
        base_retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
        attempt_timeout: float = 30.0,
        startup_stagger: float = 0.5,
        recent_items_limit: int = 10,
        preview_chars: int = 100,
    ) -> None:
        self._store = store
        self._remote = remote
        self._notifier = notifier
        self._scheduler = scheduler
        self._max_retries = max_retries
        self._base_retry_delay = base_retry_delay
        self._max_retry_delay = max_retry_delay
        self._attempt_timeout = attempt_timeout
        self._startup_stagger = startup_stagger
        self._recent_items_limit = recent_items_limit
        self._preview_chars = preview_chars

        self._in_flight: set[str] = set()
        # Set whenever no attempt is underway; shutdown waits on it.
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        # queue_id -> (generation, handle); the generation tells a fired
        # callback whether it is still the current trigger for its id.
        self._timers: dict[str, tuple[int, IScheduledCall]] = {}
        self._generation = 0
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def backoff_delay(self, retry_count: int) -> float:
        """Delay before the retry that follows attempt number ``retry_count + 1``."""
        return min(self._base_retry_delay * (2**retry_count), self._max_retry_delay)

    async def trigger(self, entry: QueueEntry) -> None:
        """Attempt delivery of *entry* now.

        Ignored when an attempt for the same id is already underway.  A
        scheduled trigger for the id is cancelled, since this attempt
        supersedes it.
        """
        queue_id = entry.id
        if self._closed:
            self._logger.debug("trigger_ignored_shutting_down", queue_id=queue_id)
            return
        if queue_id in self._in_flight:
            self._logger.debug("trigger_ignored_in_flight", queue_id=queue_id)
            return
        # Check and add happen with no await in between.
        self._in_flight.add(queue_id)
        self._idle.clear()
        self._cancel_timer(queue_id)
        try:
            await self._attempt(queue_id)
        finally:
            self._in_flight.discard(queue_id)
            if not self._in_flight:
                self._idle.set()

    def schedule(self, entry: QueueEntry, delay: float = 0.0) -> bool:
        """Trigger *entry* after *delay* seconds without waiting for the outcome.

        Replaces any trigger already scheduled for the id.  Returns
        ``False`` if the id is in flight right now or the worker is shut down.
        """
        if self._closed:
            return False
        if entry.id in self._in_flight:
            self._logger.debug("schedule_ignored_in_flight", queue_id=entry.id)
            return False
        self._schedule(entry.id, delay, _REDELIVERABLE)
        return True

    async def retry(self, queue_id: str) -> bool:
        """Manually re-deliver a ``pending`` or ``failed`` entry.

        The retry count is kept as is.  Returns ``False`` if the entry no
        longer exists.
        """
        entry = await self._store.get(queue_id)
        if entry is None:
            return False
        if entry.status is QueueStatus.IN_FLIGHT or queue_id in self._in_flight:
            self._logger.info("manual_retry_ignored_in_flight", queue_id=queue_id)
            return True
        self._logger.info("manual_retry", queue_id=queue_id, retry_count=entry.retry_count)
        self.schedule(entry)
        return True

    async def cancel(self, queue_id: str) -> bool:
        """Remove an entry whatever its state and stop any timer for it.

        An attempt already in flight finishes against the remote store,
        but its outcome can no longer touch the removed entry.  Returns
        ``False`` if the entry did not exist.
        """
        self._cancel_timer(queue_id)
        existed = await self._store.get(queue_id) is not None
        await self._store.dequeue_remove(queue_id)
        if existed:
            self._logger.info("entry_discarded", queue_id=queue_id)
            await self._publish_summary()
        return existed

    async def resume_pending(self) -> int:
        """Replay every ``pending``/``failed`` entry once, staggered.

        Used at startup and when the network comes back.  Ids that are in
        flight or already have a scheduled trigger are skipped, so calling
        this twice does not double any attempt.  Returns the number of
        entries scheduled.
        """
        entries = await self._store.list_pending()
        scheduled = 0
        for entry in entries:
            if entry.id in self._in_flight or entry.id in self._timers:
                continue
            scheduled += 1
            self._schedule(entry.id, self._startup_stagger * scheduled, _REDELIVERABLE)

        self._logger.info(
            "pending_entries_resumed",
            scheduled=scheduled,
            skipped=len(entries) - scheduled,
        )
        return scheduled

    async def shutdown(self) -> None:
        """Cancel every scheduled trigger and wait for attempts in flight.

        An attempt already underway runs to its outcome, so a snippet the
        remote store has created is removed from the queue and broadcast
        before the store is closed.  No new trigger or backoff timer is
        accepted afterwards; entries left ``pending`` are replayed by the
        next :meth:`resume_pending`.
        """
        self._closed = True
        for queue_id in list(self._timers):
            self._cancel_timer(queue_id)
        if self._in_flight:
            self._logger.info("waiting_for_in_flight_attempts", queue_ids=sorted(self._in_flight))
            await self._idle.wait()
        self._logger.debug("delivery_worker_stopped")

    @property
    def in_flight_ids(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def has_scheduled_trigger(self, queue_id: str) -> bool:
        return queue_id in self._timers

    # ------------------------------------------------------------------
    # Attempt
    # ------------------------------------------------------------------

    async def _attempt(self, queue_id: str) -> None:
        entry = await self._store.update_status(queue_id, QueueStatus.IN_FLIGHT)
        if entry is None:
            self._logger.debug("attempt_skipped_entry_gone", queue_id=queue_id)
            return
        await self._publish_summary()

        payload = entry.payload
        self._logger.debug("delivery_attempt", queue_id=queue_id, retry_count=entry.retry_count)
        try:
            snippet = await asyncio.wait_for(
                self._remote.create_snippet(
                    text=payload.text,
                    source_url=payload.source_url,
                    source_title=payload.source_title,
                ),
                timeout=self._attempt_timeout,
            )
        except asyncio.TimeoutError:
            error: DeliveryError = TransientDeliveryError(
                message=f"Attempt timed out after {self._attempt_timeout:g}s",
                provider_name=self._remote.get_provider_name(),
            )
        except DeliveryError as exc:
            error = exc
        except Exception as exc:
            self._logger.exception("delivery_unexpected_error", queue_id=queue_id)
            error = TerminalDeliveryError(
                message=f"{type(exc).__name__}: {exc}",
                provider_name=self._remote.get_provider_name(),
            )
        else:
            await self._on_success(entry, snippet)
            return

        await self._on_failure(entry, error)

    async def _on_success(self, entry: QueueEntry, snippet: CreatedSnippet) -> None:
        await self._store.dequeue_remove(entry.id)
        self._logger.info(
            "delivery_succeeded",
            queue_id=entry.id,
            snippet_id=snippet.id,
            retry_count=entry.retry_count,
        )
        await self._notifier.publish(
            SaveResultEvent(
                queue_id=entry.id,
                success=True,
                snippet_id=snippet.id,
                original_text=entry.payload.text,
            )
        )
        await self._publish_summary()

    async def _on_failure(self, entry: QueueEntry, error: DeliveryError) -> None:
        if error.retryable and entry.retry_count < self._max_retries:
            delay = self.backoff_delay(entry.retry_count)
            updated = await self._store.update_status(
                entry.id,
                QueueStatus.PENDING,
                last_error=error.message,
                retry_count=entry.retry_count + 1,
            )
            if updated is None:
                self._logger.info("retry_dropped_entry_discarded", queue_id=entry.id)
                return
            if not self._schedule(entry.id, delay, _BACKOFF_ONLY):
                self._logger.info("retry_deferred_shutting_down", queue_id=entry.id, error=error.message)
                return
            self._logger.warning(
                "delivery_retry_scheduled",
                queue_id=entry.id,
                retry_count=updated.retry_count,
                delay=delay,
                http_status=error.http_status,
                error=error.message,
            )
            await self._publish_summary()
            return

        updated = await self._store.update_status(entry.id, QueueStatus.FAILED, last_error=error.message)
        if updated is None:
            self._logger.info("failure_dropped_entry_discarded", queue_id=entry.id)
            return
        self._logger.error(
            "delivery_failed",
            queue_id=entry.id,
            retry_count=updated.retry_count,
            retryable=error.retryable,
            http_status=error.http_status,
            error=error.message,
        )
        await self._notifier.publish(
            SaveResultEvent(
                queue_id=entry.id,
                success=False,
                error=error.message,
                original_text=entry.payload.text,
            )
        )
        await self._publish_summary()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule(self, queue_id: str, delay: float, statuses: frozenset[QueueStatus]) -> bool:
        self._cancel_timer(queue_id)
        if self._closed:
            return False
        self._generation += 1
        generation = self._generation
        call = self._scheduler.after(
            delay,
            partial(self._run_scheduled, queue_id, generation, statuses),
        )
        self._timers[queue_id] = (generation, call)
        return True

    def _cancel_timer(self, queue_id: str) -> None:
        scheduled = self._timers.pop(queue_id, None)
        if scheduled is not None:
            scheduled[1].cancel()

    async def _run_scheduled(
        self,
        queue_id: str,
        generation: int,
        statuses: frozenset[QueueStatus],
    ) -> None:
        current = self._timers.get(queue_id)
        if current is None or current[0] != generation:
            # Cancelled or superseded after the timer fired.
            return
        del self._timers[queue_id]

        entry = await self._store.get(queue_id)
        if entry is None or entry.status not in statuses:
            self._logger.debug(
                "scheduled_trigger_skipped",
                queue_id=queue_id,
                status=entry.status.value if entry else None,
            )
            return
        await self.trigger(entry)

    async def _publish_summary(self) -> None:
        summary = await build_summary(
            self._store,
            recent_limit=self._recent_items_limit,
            preview_chars=self._preview_chars,
        )
        await self._notifier.publish(summary)
