"""Event plumbing between the delivery worker and attached observers."""

from knowledge_vault.pipeline.broadcast_notifier import BroadcastNotifier

__all__ = ["BroadcastNotifier"]
