"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides
  3. Environment variables  -- deployment-time values

:func:`load_config` reads the YAML file and deep-merges on top the
YAML-backed keys that :class:`Settings` received explicitly (from the
environment, ``.env`` or keyword arguments).  Settings defaults never mask
a YAML value.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from knowledge_vault.config.settings import Settings

# (yaml section, yaml key) -> Settings field that overrides it
_YAML_BACKED_FIELDS: dict[tuple[str, str], str] = {
    ("queue", "preview_chars"): "preview_chars",
    ("remote_store", "snippets_path"): "remote_snippets_path",
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge explicitly set Settings values over it.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
            only the explicitly set Settings values.
        settings: Pre-built Settings; constructed from the environment
            when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    explicit = settings.model_fields_set
    env_overrides: dict[str, dict[str, Any]] = {}
    for (section, key), field in _YAML_BACKED_FIELDS.items():
        if field in explicit:
            env_overrides.setdefault(section, {})[key] = getattr(settings, field)

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
