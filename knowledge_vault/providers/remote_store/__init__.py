"""Remote snippet store clients."""

from knowledge_vault.providers.remote_store.http_remote_store import HttpRemoteStoreClient

__all__ = ["HttpRemoteStoreClient"]
