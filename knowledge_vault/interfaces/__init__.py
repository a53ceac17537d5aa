"""Public interface definitions for the save queue's collaborators.

The delivery worker and the submission service only see these abstract
base classes; concrete adapters live in ``knowledge_vault.providers`` and
are wired together in ``knowledge_vault.main``.  Tests inject fakes.

CONCRETE PROVIDER MAP:
    Interface            ->  Concrete implementations
    ---------------------------------------------------------
    IQueueStore          ->  SQLiteQueueStore
    IRemoteStoreClient   ->  HttpRemoteStoreClient
    IScheduler           ->  AsyncioScheduler
"""

from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.interfaces.remote_store import IRemoteStoreClient
from knowledge_vault.interfaces.scheduler import IScheduledCall, IScheduler, ScheduledCallback

__all__ = [
    "IQueueStore",
    "IRemoteStoreClient",
    "IScheduledCall",
    "IScheduler",
    "ScheduledCallback",
]
