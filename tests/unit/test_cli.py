"""Unit tests for the queue CLI (knowledge_vault.cli.queue)."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from knowledge_vault.cli.queue import _build_parser, main
from knowledge_vault.models.queue import CapturePayload, QueueStatus
from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore


# ======================================================================
# Shared helpers
# ======================================================================


def _seed(db_path: Path, entries: list[tuple[str, QueueStatus]]) -> list[str]:
    """Create a queue file holding *entries* and return their ids."""

    async def _run() -> list[str]:
        store = SQLiteQueueStore(db_path=db_path)
        await store.initialize()
        ids = []
        try:
            for text, status in entries:
                entry = await store.enqueue(
                    CapturePayload(text=text, source_url="https://example.com", source_domain="example.com")
                )
                if status is not QueueStatus.PENDING:
                    await store.update_status(entry.id, status, last_error="HTTP 400")
                ids.append(entry.id)
        finally:
            await store.close()
        return ids

    return asyncio.run(_run())


def _remaining(db_path: Path) -> list[str]:
    async def _run() -> list[str]:
        store = SQLiteQueueStore(db_path=db_path)
        await store.initialize()
        try:
            return [e.payload.text for e in await store.list_all()]
        finally:
            await store.close()

    return asyncio.run(_run())


def _invoke(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_discard_requires_id(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["discard"])

    def test_purge_failed_yes_flag(self) -> None:
        args = _build_parser().parse_args(["purge-failed", "-y"])
        assert args.command == "purge-failed"
        assert args.yes is True

    def test_no_command_exits_nonzero(self, capsys) -> None:
        assert _invoke() == 1


# ======================================================================
# Commands
# ======================================================================


class TestCommands:
    @pytest.fixture
    def db_path(self, tmp_path: Path) -> Path:
        return tmp_path / "queue.db"

    def test_list_shows_entries(self, db_path: Path, capsys) -> None:
        ids = _seed(db_path, [("pending capture text", QueueStatus.PENDING), ("failed capture text", QueueStatus.FAILED)])

        assert _invoke("--db", str(db_path), "list") == 0

        out = capsys.readouterr().out
        assert ids[0] in out
        assert "failed capture text" in out
        assert "last error: HTTP 400" in out

    def test_list_empty_queue(self, db_path: Path, capsys) -> None:
        assert _invoke("--db", str(db_path), "list") == 0
        assert "Save queue is empty." in capsys.readouterr().out

    def test_summary(self, db_path: Path, capsys) -> None:
        _seed(db_path, [("pending capture text", QueueStatus.PENDING), ("failed capture text", QueueStatus.FAILED)])

        assert _invoke("--db", str(db_path), "summary") == 0

        out = capsys.readouterr().out
        assert "Pending:          1" in out
        assert "Failed (recent):  1" in out

    def test_discard(self, db_path: Path) -> None:
        ids = _seed(db_path, [("keep this capture", QueueStatus.PENDING), ("drop this capture", QueueStatus.FAILED)])

        assert _invoke("--db", str(db_path), "discard", ids[1]) == 0
        assert _remaining(db_path) == ["keep this capture"]

    def test_discard_unknown_id(self, db_path: Path, capsys) -> None:
        assert _invoke("--db", str(db_path), "discard", "missing") == 1
        assert "No queue entry" in capsys.readouterr().err

    def test_purge_failed_with_yes(self, db_path: Path) -> None:
        _seed(
            db_path,
            [
                ("pending capture text", QueueStatus.PENDING),
                ("failed capture one", QueueStatus.FAILED),
                ("failed capture two", QueueStatus.FAILED),
            ],
        )

        assert _invoke("--db", str(db_path), "purge-failed", "--yes") == 0
        assert _remaining(db_path) == ["pending capture text"]

    def test_purge_failed_aborted(self, db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _seed(db_path, [("failed capture one", QueueStatus.FAILED)])
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert _invoke("--db", str(db_path), "purge-failed") == 0
        assert _remaining(db_path) == ["failed capture one"]
