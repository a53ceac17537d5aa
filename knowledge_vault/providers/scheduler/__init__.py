"""Timer schedulers backing retry backoff and staggered recovery."""

from knowledge_vault.providers.scheduler.asyncio_scheduler import AsyncioScheduler

__all__ = ["AsyncioScheduler"]
