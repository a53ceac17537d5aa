"""Durable queue stores.

SQLiteQueueStore keeps the save queue in a local SQLite file so pending
captures survive restarts.  Any other backend implementing IQueueStore
can be swapped in without touching the delivery worker.
"""

from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore

__all__ = ["SQLiteQueueStore"]
