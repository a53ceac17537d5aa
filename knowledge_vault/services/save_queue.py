"""Producer and control boundary of the save queue.

Capture surfaces call :meth:`SaveQueueService.submit`; control panels call
:meth:`get_summary`, :meth:`retry` and :meth:`discard`.  The service owns
validation and duplicate filtering, and hands accepted entries to the
:class:`DeliveryWorker`.  Delivery outcomes reach observers only through
the :class:`BroadcastNotifier`.
"""

from __future__ import annotations

import structlog

from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.models.events import StateUpdateEvent
from knowledge_vault.models.queue import CapturePayload, QueueEntry, RejectionReason, SubmitResult
from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier
from knowledge_vault.services.delivery_worker import DeliveryWorker
from knowledge_vault.services.duplicate_filter import DuplicateFilter
from knowledge_vault.services.queue_summary import build_summary
from knowledge_vault.utils.errors import CapacityError, QueueEntryNotFoundError, ValidationError
from knowledge_vault.utils.logging import get_logger
from knowledge_vault.utils.text import extract_domain


class SaveQueueService:
    """Accepts captures into the durable queue and exposes queue controls."""

    def __init__(
        self,
        store: IQueueStore,
        worker: DeliveryWorker,
        notifier: BroadcastNotifier,
        duplicate_filter: DuplicateFilter,
        *,
        min_capture_length: int = 10,
        max_capture_length: int = 10_000,
        recent_items_limit: int = 10,
        preview_chars: int = 100,
    ) -> None:
        self._store = store
        self._worker = worker
        self._notifier = notifier
        self._duplicates = duplicate_filter
        self._min_length = min_capture_length
        self._max_length = max_capture_length
        self._recent_items_limit = recent_items_limit
        self._preview_chars = preview_chars
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> int:
        """Open the store and replay unfinished work.  Returns the number replayed."""
        await self._store.initialize()
        resumed = await self._worker.resume_pending()
        self._logger.info("save_queue_started", resumed=resumed)
        return resumed

    async def stop(self) -> None:
        """Let attempts in flight settle, then close the store."""
        await self._worker.shutdown()
        await self._store.close()
        self._logger.info("save_queue_stopped")

    # ------------------------------------------------------------------
    # Producer
    # ------------------------------------------------------------------

    async def submit(
        self,
        text: str,
        source_url: str,
        source_title: str = "",
        source_domain: str | None = None,
        context: str | None = None,
    ) -> SubmitResult:
        """Validate a capture and enqueue it for delivery.

        Rejections are checked in order: length, duplicate, capacity.
        Nothing is written when a capture is rejected.
        """
        try:
            self._validate(text, source_url)
        except ValidationError as exc:
            return self._reject(RejectionReason(exc.reason), exc.message, source_url)

        payload = CapturePayload(
            text=text,
            source_url=source_url,
            source_title=source_title,
            source_domain=source_domain or extract_domain(source_url),
            context=context,
        )
        try:
            entry = await self._store.enqueue(payload)
        except CapacityError as exc:
            # Let the user resubmit once the queue drains.
            self._duplicates.forget(text, source_url)
            return self._reject(RejectionReason.QUEUE_FULL, exc.message, source_url)

        self._logger.info(
            "capture_queued",
            queue_id=entry.id,
            source_domain=payload.source_domain,
            length=len(text),
        )
        self._worker.schedule(entry)
        await self._publish_summary()
        return SubmitResult.accept(entry.id)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def get_summary(self) -> StateUpdateEvent:
        return await build_summary(
            self._store,
            recent_limit=self._recent_items_limit,
            preview_chars=self._preview_chars,
        )

    async def list_entries(self) -> list[QueueEntry]:
        return await self._store.list_all()

    async def retry(self, queue_id: str) -> None:
        """Re-deliver an entry by hand.

        Raises
        ------
        QueueEntryNotFoundError
            If *queue_id* is not in the queue.
        """
        if not await self._worker.retry(queue_id):
            raise QueueEntryNotFoundError(f"No queue entry with id {queue_id}")

    async def discard(self, queue_id: str) -> None:
        """Remove an entry in any state and cancel its pending retry.

        Raises
        ------
        QueueEntryNotFoundError
            If *queue_id* is not in the queue.
        """
        if not await self._worker.cancel(queue_id):
            raise QueueEntryNotFoundError(f"No queue entry with id {queue_id}")

    async def network_restored(self) -> int:
        """Replay pending and failed entries after connectivity returns."""
        self._logger.info("network_restored")
        return await self._worker.resume_pending()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _validate(self, text: str, source_url: str) -> None:
        """Raise :class:`ValidationError` if *text* may not be queued.

        Passing the duplicate check records the capture in the filter.
        """
        if len(text) < self._min_length:
            raise ValidationError(
                f"Selection is too short (minimum {self._min_length} characters)",
                reason=RejectionReason.TOO_SHORT.value,
            )
        if len(text) > self._max_length:
            raise ValidationError(
                f"Selection is too long (maximum {self._max_length} characters)",
                reason=RejectionReason.TOO_LONG.value,
            )
        if not self._duplicates.check_and_record(text, source_url):
            raise ValidationError("This text was just saved", reason=RejectionReason.DUPLICATE.value)

    def _reject(self, reason: RejectionReason, message: str, source_url: str) -> SubmitResult:
        self._logger.info("capture_rejected", reason=reason.value, source_url=source_url)
        return SubmitResult.reject(reason, message)

    async def _publish_summary(self) -> None:
        await self._notifier.publish(await self.get_summary())
