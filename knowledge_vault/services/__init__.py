"""Business-logic services for the save queue."""

from knowledge_vault.services.delivery_worker import DeliveryWorker
from knowledge_vault.services.duplicate_filter import DuplicateFilter
from knowledge_vault.services.queue_summary import build_summary
from knowledge_vault.services.save_queue import SaveQueueService

__all__ = ["DeliveryWorker", "DuplicateFilter", "SaveQueueService", "build_summary"]
