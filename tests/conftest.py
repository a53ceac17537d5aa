"""Shared pytest fixtures for the Knowledge Vault test suite."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Union

import pytest
import pytest_asyncio

from knowledge_vault.interfaces.remote_store import IRemoteStoreClient
from knowledge_vault.interfaces.scheduler import IScheduledCall, IScheduler, ScheduledCallback
from knowledge_vault.models.events import QueueEvent, SaveResultEvent, StateUpdateEvent
from knowledge_vault.models.queue import CapturePayload
from knowledge_vault.models.snippet import CreatedSnippet
from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier
from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore
from knowledge_vault.services.delivery_worker import DeliveryWorker
from knowledge_vault.services.duplicate_filter import DuplicateFilter
from knowledge_vault.services.save_queue import SaveQueueService

# ---------------------------------------------------------------------------
# Manual clock scheduler
# ---------------------------------------------------------------------------


class _ManualCall(IScheduledCall):
    def __init__(self, due: float, seq: int, callback: ScheduledCallback) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(IScheduler):
    """Scheduler driven by :meth:`advance` instead of the wall clock.

    Due callbacks run in (due time, registration order) and awaitable
    results are awaited before the next callback runs.  Callbacks that
    schedule further work within the advanced window run too.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._calls: list[_ManualCall] = []
        self._seq = 0

    def after(self, delay: float, callback: ScheduledCallback) -> IScheduledCall:
        self._seq += 1
        call = _ManualCall(self.now + max(0.0, delay), self._seq, callback)
        self._calls.append(call)
        return call

    async def aclose(self) -> None:
        for call in self._calls:
            call.cancel()
        self._calls.clear()

    async def advance(self, seconds: float = 0.0) -> None:
        target = self.now + seconds
        while True:
            due = [c for c in self._calls if not c.cancelled and c.due <= target]
            if not due:
                break
            call = min(due, key=lambda c: (c.due, c.seq))
            self._calls.remove(call)
            self.now = max(self.now, call.due)
            result = call.callback()
            if inspect.isawaitable(result):
                await result
        self.now = target
        self._calls = [c for c in self._calls if not c.cancelled]

    @property
    def pending_delays(self) -> list[float]:
        """Seconds until each live callback fires, soonest first."""
        return sorted(c.due - self.now for c in self._calls if not c.cancelled)


# ---------------------------------------------------------------------------
# Scripted remote store
# ---------------------------------------------------------------------------

Outcome = Union[CreatedSnippet, BaseException, Callable[[], Awaitable[CreatedSnippet]]]


class ScriptedRemoteStore(IRemoteStoreClient):
    """Remote store whose answers are popped from a list of outcomes.

    An outcome is a ``CreatedSnippet`` to return, an exception to raise,
    or an async callable to await.  Once the script runs out every call
    succeeds with id ``s<call number>``.
    """

    def __init__(self, outcomes: list[Outcome] | None = None) -> None:
        self.outcomes: list[Outcome] = list(outcomes or [])
        self.calls: list[dict[str, str]] = []

    async def create_snippet(self, text: str, source_url: str, source_title: str) -> CreatedSnippet:
        self.calls.append({"text": text, "source_url": source_url, "source_title": source_title})
        if not self.outcomes:
            return CreatedSnippet(id=f"s{len(self.calls)}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome()
        return outcome

    def get_provider_name(self) -> str:
        return "scripted_remote"


class EventRecorder:
    """Notifier listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[QueueEvent] = []

    def __call__(self, event: QueueEvent) -> None:
        self.events.append(event)

    @property
    def results(self) -> list[SaveResultEvent]:
        return [e for e in self.events if isinstance(e, SaveResultEvent)]

    @property
    def state_updates(self) -> list[StateUpdateEvent]:
        return [e for e in self.events if isinstance(e, StateUpdateEvent)]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _payload(text: str = "The quick brown fox jumps", url: str = "https://example.com/a") -> CapturePayload:
    return CapturePayload(text=text, source_url=url, source_title="Example", source_domain="example.com")


@pytest.fixture
def make_payload() -> Callable[..., CapturePayload]:
    """Factory for capture payloads: ``make_payload(text=..., url=...)``."""
    return _payload


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def remote() -> ScriptedRemoteStore:
    return ScriptedRemoteStore()


@pytest.fixture
def notifier() -> BroadcastNotifier:
    return BroadcastNotifier()


@pytest.fixture
def recorder(notifier: BroadcastNotifier) -> EventRecorder:
    rec = EventRecorder()
    notifier.subscribe(rec)
    return rec


@pytest_asyncio.fixture
async def store(tmp_path: Any) -> SQLiteQueueStore:
    queue_store = SQLiteQueueStore(db_path=tmp_path / "queue.db", max_size=100)
    await queue_store.initialize()
    yield queue_store
    await queue_store.close()


@pytest.fixture
def worker(
    store: SQLiteQueueStore,
    remote: ScriptedRemoteStore,
    notifier: BroadcastNotifier,
    scheduler: ManualScheduler,
) -> DeliveryWorker:
    return DeliveryWorker(
        store=store,
        remote=remote,
        notifier=notifier,
        scheduler=scheduler,
        max_retries=3,
        base_retry_delay=1.0,
        max_retry_delay=30.0,
        attempt_timeout=30.0,
        startup_stagger=0.5,
    )


@pytest.fixture
def clock() -> list[float]:
    """Mutable clock for the duplicate filter; ``clock[0]`` is the current time."""
    return [1000.0]


@pytest.fixture
def duplicate_filter(clock: list[float]) -> DuplicateFilter:
    return DuplicateFilter(window_seconds=5.0, prefix_length=100, clock=lambda: clock[0])


@pytest.fixture
def service(
    store: SQLiteQueueStore,
    worker: DeliveryWorker,
    notifier: BroadcastNotifier,
    duplicate_filter: DuplicateFilter,
) -> SaveQueueService:
    return SaveQueueService(
        store=store,
        worker=worker,
        notifier=notifier,
        duplicate_filter=duplicate_filter,
    )
