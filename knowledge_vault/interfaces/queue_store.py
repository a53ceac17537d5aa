"""Abstract base class for the durable save-queue store.

The store exclusively owns :class:`QueueEntry` lifetime.  It is opened once
per process (:meth:`initialize`) and closed on shutdown (:meth:`close`), so
the application and tests can inject any implementation.  Every operation
is atomic with respect to the underlying storage; the store does not
serialize logical operations beyond that.  Callers (the delivery worker)
avoid overlapping mutations on the same id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_vault.models.queue import CapturePayload, QueueEntry, QueueStatus


class IQueueStore(ABC):
    """Contract for a bounded, insertion-ordered, persistent queue of entries."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open the backing storage and create its schema if needed."""

    @abstractmethod
    async def close(self) -> None:
        """Release the backing storage.  Safe to call more than once."""

    @abstractmethod
    async def enqueue(self, payload: CapturePayload) -> QueueEntry:
        """Persist a new ``pending`` entry with ``retry_count == 0``.

        Raises
        ------
        CapacityError
            If the store already holds its maximum number of entries.
            Existing entries are never evicted to make room.
        """

    @abstractmethod
    async def dequeue_remove(self, queue_id: str) -> None:
        """Permanently remove an entry.  No-op if absent."""

    @abstractmethod
    async def list_all(self) -> list[QueueEntry]:
        """Return every entry in enqueue order."""

    @abstractmethod
    async def list_pending(self) -> list[QueueEntry]:
        """Return entries eligible for (re)delivery: ``pending`` and ``failed``."""

    @abstractmethod
    async def update_status(
        self,
        queue_id: str,
        status: QueueStatus,
        last_error: str | None = None,
        retry_count: int | None = None,
    ) -> QueueEntry | None:
        """Mutate an entry in place and return its new state.

        ``last_error`` is only overwritten when given.  ``retry_count``
        never decreases.  Returns ``None`` without error when the id no
        longer exists (removed concurrently by a success or discard).
        """

    @abstractmethod
    async def get(self, queue_id: str) -> QueueEntry | None:
        """Return the entry with *queue_id*, or ``None``."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored entries."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
