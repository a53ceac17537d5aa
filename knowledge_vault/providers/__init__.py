"""Concrete adapters for the interfaces in ``knowledge_vault.interfaces``."""
