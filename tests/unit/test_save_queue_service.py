"""Unit tests for SaveQueueService (producer and control boundary)."""

from __future__ import annotations

import asyncio

import pytest

from knowledge_vault.models.queue import QueueStatus, RejectionReason
from knowledge_vault.models.snippet import CreatedSnippet
from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore
from knowledge_vault.services.delivery_worker import DeliveryWorker
from knowledge_vault.services.save_queue import SaveQueueService
from knowledge_vault.utils.errors import QueueEntryNotFoundError, TerminalDeliveryError, ValidationError

URL = "https://www.example.com/article"


class TestSubmit:
    @pytest.mark.asyncio
    async def test_accepts_and_hands_to_worker(self, service, store, scheduler, recorder) -> None:
        result = await service.submit("The quick brown fox jumps", URL, "Example")

        assert result.accepted is True
        assert result.queue_id is not None
        entry = await store.get(result.queue_id)
        assert entry.status is QueueStatus.PENDING
        assert entry.payload.source_domain == "example.com"
        assert scheduler.pending_delays == [0.0]
        assert recorder.state_updates[-1].pending_count == 1

    @pytest.mark.asyncio
    async def test_explicit_domain_is_kept(self, service, store) -> None:
        result = await service.submit(
            "The quick brown fox jumps", URL, "Example", source_domain="Example Docs", context="ctx"
        )
        entry = await store.get(result.queue_id)
        assert entry.payload.source_domain == "Example Docs"
        assert entry.payload.context == "ctx"

    @pytest.mark.asyncio
    async def test_too_short_rejected(self, service, store) -> None:
        result = await service.submit("tiny", URL)
        assert result.accepted is False
        assert result.reason is RejectionReason.TOO_SHORT
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_length_counts_raw_characters(self, service) -> None:
        result = await service.submit("ab" + " " * 10, URL)
        assert result.accepted is True

    @pytest.mark.asyncio
    async def test_one_below_minimum_rejected(self, service) -> None:
        result = await service.submit("x" * 9, URL)
        assert result.reason is RejectionReason.TOO_SHORT

    @pytest.mark.asyncio
    async def test_exact_minimum_accepted(self, service) -> None:
        assert (await service.submit("x" * 10, URL)).accepted is True

    @pytest.mark.asyncio
    async def test_too_long_rejected(self, service, store) -> None:
        result = await service.submit("x" * 10_001, URL)
        assert result.reason is RejectionReason.TOO_LONG
        assert await store.count() == 0

    @pytest.mark.parametrize(
        ("text", "reason"),
        [("x" * 9, "too_short"), ("x" * 10_001, "too_long")],
    )
    @pytest.mark.asyncio
    async def test_validate_raises_with_reason(self, service, text: str, reason: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            service._validate(text, URL)
        assert exc_info.value.reason == reason

    @pytest.mark.asyncio
    async def test_validate_records_then_flags_duplicate(self, service) -> None:
        service._validate("The quick brown fox jumps", URL)
        with pytest.raises(ValidationError) as exc_info:
            service._validate("The quick brown fox jumps", URL)
        assert exc_info.value.reason == "duplicate"

    @pytest.mark.asyncio
    async def test_duplicate_within_window_rejected(self, service, store, clock) -> None:
        first = await service.submit("The quick brown fox jumps", URL)
        clock[0] += 1.0
        second = await service.submit("The quick brown fox jumps", URL)

        assert first.accepted is True
        assert second.accepted is False
        assert second.reason is RejectionReason.DUPLICATE
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_rejected_capture_does_not_publish(self, service, recorder) -> None:
        await service.submit("tiny", URL)
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_queue_full_rejected_and_resubmittable(
        self, tmp_path, worker, notifier, duplicate_filter
    ) -> None:
        small = SQLiteQueueStore(db_path=tmp_path / "small.db", max_size=1)
        await small.initialize()
        try:
            svc = SaveQueueService(small, worker, notifier, duplicate_filter)
            await svc.submit("first capture text", URL)

            full = await svc.submit("second capture text", URL)
            assert full.reason is RejectionReason.QUEUE_FULL

            # The failed enqueue left no duplicate record behind.
            await small.dequeue_remove((await small.list_all())[0].id)
            again = await svc.submit("second capture text", URL)
            assert again.accepted is True
        finally:
            await small.close()


class TestControl:
    @pytest.mark.asyncio
    async def test_scenario_accept_then_deliver(self, service, store, remote, scheduler, recorder) -> None:
        remote.outcomes = [CreatedSnippet(id="s1")]
        result = await service.submit("The quick brown fox jumps", URL, "Example")

        await scheduler.advance(0)

        assert await store.count() == 0
        assert recorder.results[-1].queue_id == result.queue_id
        assert recorder.results[-1].snippet_id == "s1"
        assert recorder.results[-1].original_text == "The quick brown fox jumps"
        assert (await service.get_summary()).pending_count == 0

    @pytest.mark.asyncio
    async def test_summary_lists_recent_entries(self, service, scheduler) -> None:
        for i in range(12):
            await service.submit(f"capture number {i:02d} text", URL)

        summary = await service.get_summary()

        assert summary.pending_count == 12
        assert len(summary.recent_items) == 10
        assert summary.recent_items[0].text == "capture number 02 text"
        assert summary.recent_items[-1].source_domain == "example.com"

    @pytest.mark.asyncio
    async def test_retry_unknown_raises(self, service) -> None:
        with pytest.raises(QueueEntryNotFoundError):
            await service.retry("missing")

    @pytest.mark.asyncio
    async def test_discard_unknown_raises(self, service) -> None:
        with pytest.raises(QueueEntryNotFoundError):
            await service.discard("missing")

    @pytest.mark.asyncio
    async def test_discard_failed_entry(self, service, store, remote, scheduler) -> None:
        remote.outcomes = [TerminalDeliveryError(message="HTTP 400", http_status=400)]
        result = await service.submit("The quick brown fox jumps", URL)
        await scheduler.advance(0)
        assert (await store.get(result.queue_id)).status is QueueStatus.FAILED

        await service.discard(result.queue_id)

        assert await service.list_entries() == []

    @pytest.mark.asyncio
    async def test_retry_failed_entry(self, service, store, remote, scheduler, recorder) -> None:
        remote.outcomes = [TerminalDeliveryError(message="HTTP 400", http_status=400)]
        result = await service.submit("The quick brown fox jumps", URL)
        await scheduler.advance(0)

        await service.retry(result.queue_id)
        await scheduler.advance(0)

        assert await store.get(result.queue_id) is None
        assert [r.success for r in recorder.results] == [False, True]



class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_replays_unfinished_work(
        self, tmp_path, remote, notifier, scheduler, duplicate_filter, make_payload
    ) -> None:
        db_path = tmp_path / "restart.db"
        previous = SQLiteQueueStore(db_path=db_path)
        await previous.initialize()
        crashed = await previous.enqueue(make_payload(text="crashed mid attempt"))
        await previous.update_status(crashed.id, QueueStatus.IN_FLIGHT)
        await previous.enqueue(make_payload(text="never attempted"))
        await previous.close()

        store = SQLiteQueueStore(db_path=db_path)
        worker = DeliveryWorker(store, remote, notifier, scheduler)
        svc = SaveQueueService(store, worker, notifier, duplicate_filter)
        try:
            assert await svc.start() == 2
            await scheduler.advance(1.0)
            assert [c["text"] for c in remote.calls] == ["crashed mid attempt", "never attempted"]
            assert await store.count() == 0
        finally:
            await svc.stop()

    @pytest.mark.asyncio
    async def test_network_restored_replays_failed(self, service, store, remote, scheduler) -> None:
        remote.outcomes = [TerminalDeliveryError(message="HTTP 400", http_status=400)]
        result = await service.submit("The quick brown fox jumps", URL)
        await scheduler.advance(0)

        assert await service.network_restored() == 1
        await scheduler.advance(0.5)

        assert await store.get(result.queue_id) is None

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_triggers(self, service, remote, scheduler) -> None:
        await service.submit("The quick brown fox jumps", URL)

        await service.stop()
        await scheduler.advance(10)

        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_stop_waits_for_attempt_in_flight(self, service, remote, scheduler, recorder, tmp_path) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def _slow_success() -> CreatedSnippet:
            started.set()
            await release.wait()
            return CreatedSnippet(id="s1")

        remote.outcomes = [_slow_success]
        result = await service.submit("The quick brown fox jumps", URL)
        delivery = asyncio.create_task(scheduler.advance(0))
        await asyncio.wait_for(started.wait(), timeout=5)

        stopping = asyncio.create_task(service.stop())
        for _ in range(5):
            await asyncio.sleep(0)
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=5)
        await delivery

        assert [(r.queue_id, r.snippet_id) for r in recorder.results] == [(result.queue_id, "s1")]
        reopened = SQLiteQueueStore(db_path=tmp_path / "queue.db")
        await reopened.initialize()
        try:
            assert await reopened.count() == 0
        finally:
            await reopened.close()
