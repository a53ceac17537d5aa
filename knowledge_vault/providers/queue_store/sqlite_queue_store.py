"""SQLite-backed durable save queue.

Persists queue entries to a local SQLite database (``data/save_queue.db``
by default) through ``aiosqlite``.  One connection is opened in
:meth:`initialize` and held until :meth:`close`, matching the
one-store-per-session lifecycle the application expects.

Key order comes from an ``AUTOINCREMENT`` sequence column, so listings
are always in enqueue order and a removed row's position is never reused.
The capacity check and the insert are a single ``INSERT ... SELECT ...
WHERE`` statement: a full queue rejects the write without evicting
anything.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.models.queue import CapturePayload, QueueEntry, QueueStatus
from knowledge_vault.utils.errors import CapacityError
from knowledge_vault.utils.logging import get_logger

_DEFAULT_DB_PATH = Path("data/save_queue.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS queue_entries (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT    NOT NULL UNIQUE,
    created_at   TEXT    NOT NULL,
    status       TEXT    NOT NULL,
    retry_count  INTEGER NOT NULL DEFAULT 0,
    last_error   TEXT,
    payload_json TEXT    NOT NULL
);
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_queue_entries_status ON queue_entries(status);"

_COLUMNS = "id, created_at, status, retry_count, last_error, payload_json"

_INSERT_IF_ROOM_SQL = """\
INSERT INTO queue_entries (id, created_at, status, retry_count, payload_json)
SELECT ?, ?, ?, 0, ?
WHERE (SELECT COUNT(*) FROM queue_entries) < ?;
"""

_UPDATE_STATUS_SQL = """\
UPDATE queue_entries
SET status      = ?,
    last_error  = COALESCE(?, last_error),
    retry_count = MAX(retry_count, COALESCE(?, retry_count))
WHERE id = ?;
"""

_RESET_IN_FLIGHT_SQL = "UPDATE queue_entries SET status = ? WHERE status = ?;"


class SQLiteQueueStore(IQueueStore):
    """Bounded, insertion-ordered queue persisted in SQLite.

    Parameters
    ----------
    db_path:
        Path to the SQLite file, or ``":memory:"`` for a throwaway store.
    max_size:
        Maximum number of entries; :meth:`enqueue` raises
        :class:`CapacityError` beyond it.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, max_size: int = 100) -> None:
        self._db_path = str(db_path)
        self._max_size = max_size
        self._db: aiosqlite.Connection | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the database, create the schema, and release crashed attempts.

        Entries still marked ``in-flight`` belong to a process that died
        mid-attempt; they go back to ``pending`` so startup recovery
        replays them.
        """
        if self._db is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute(_CREATE_TABLE_SQL)
        await self._db.execute(_CREATE_INDEX_SQL)
        cursor = await self._db.execute(
            _RESET_IN_FLIGHT_SQL,
            (QueueStatus.PENDING.value, QueueStatus.IN_FLIGHT.value),
        )
        released = cursor.rowcount
        await self._db.commit()

        self._logger.info(
            "queue_store_initialized",
            path=self._db_path,
            max_size=self._max_size,
            existing_entries=await self.count(),
            released_in_flight=released,
        )

    async def close(self) -> None:
        if self._db is None:
            return
        await self._db.close()
        self._db = None
        self._logger.info("queue_store_closed", path=self._db_path)

    # ------------------------------------------------------------------
    # IQueueStore implementation
    # ------------------------------------------------------------------

    async def enqueue(self, payload: CapturePayload) -> QueueEntry:
        db = self._require_db()
        entry = QueueEntry(
            id=str(uuid.uuid4()),
            created_at=datetime.now(tz=timezone.utc),  # noqa: UP017
            payload=payload,
        )
        cursor = await db.execute(
            _INSERT_IF_ROOM_SQL,
            (
                entry.id,
                entry.created_at.isoformat(),
                entry.status.value,
                payload.model_dump_json(),
                self._max_size,
            ),
        )
        await db.commit()

        if cursor.rowcount == 0:
            self._logger.warning("queue_full", max_size=self._max_size)
            raise CapacityError(
                message=f"Save queue is full ({self._max_size} entries)",
                provider_name=self.get_provider_name(),
            )

        self._logger.debug("entry_enqueued", queue_id=entry.id)
        return entry

    async def dequeue_remove(self, queue_id: str) -> None:
        db = self._require_db()
        cursor = await db.execute("DELETE FROM queue_entries WHERE id = ?;", (queue_id,))
        await db.commit()
        if cursor.rowcount:
            self._logger.debug("entry_removed", queue_id=queue_id)

    async def list_all(self) -> list[QueueEntry]:
        db = self._require_db()
        cursor = await db.execute(f"SELECT {_COLUMNS} FROM queue_entries ORDER BY seq;")
        rows = await cursor.fetchall()
        return [_row_to_entry(r) for r in rows]

    async def list_pending(self) -> list[QueueEntry]:
        db = self._require_db()
        cursor = await db.execute(
            f"SELECT {_COLUMNS} FROM queue_entries WHERE status IN (?, ?) ORDER BY seq;",
            (QueueStatus.PENDING.value, QueueStatus.FAILED.value),
        )
        rows = await cursor.fetchall()
        return [_row_to_entry(r) for r in rows]

    async def update_status(
        self,
        queue_id: str,
        status: QueueStatus,
        last_error: str | None = None,
        retry_count: int | None = None,
    ) -> QueueEntry | None:
        db = self._require_db()
        cursor = await db.execute(
            _UPDATE_STATUS_SQL,
            (status.value, last_error, retry_count, queue_id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            self._logger.debug("update_status_missing_entry", queue_id=queue_id, status=status.value)
            return None
        return await self.get(queue_id)

    async def get(self, queue_id: str) -> QueueEntry | None:
        db = self._require_db()
        cursor = await db.execute(
            f"SELECT {_COLUMNS} FROM queue_entries WHERE id = ?;",
            (queue_id,),
        )
        row = await cursor.fetchone()
        return _row_to_entry(row) if row is not None else None

    async def count(self) -> int:
        db = self._require_db()
        cursor = await db.execute("SELECT COUNT(*) FROM queue_entries;")
        row = await cursor.fetchone()
        return int(row[0])

    def get_provider_name(self) -> str:
        return "sqlite_queue"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteQueueStore used before initialize()")
        return self._db


def _row_to_entry(row: aiosqlite.Row) -> QueueEntry:
    return QueueEntry(
        id=row["id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        status=QueueStatus(row["status"]),
        retry_count=row["retry_count"],
        last_error=row["last_error"],
        payload=CapturePayload.model_validate_json(row["payload_json"]),
    )
