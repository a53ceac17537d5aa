"""Configuration module: exports Settings and load_config."""

from knowledge_vault.config.loader import load_config
from knowledge_vault.config.settings import Settings

__all__ = ["Settings", "load_config"]
