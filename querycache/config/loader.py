"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

  1. YAML file (default ``config/querycache.yaml``), e.g.::

         cache:
           max_size: 1000
           stale_time: 30000
         logging:
           level: INFO

  2. ``.env`` file and ``QUERYCACHE_*`` environment variables, applied only
     for the settings they actually set.
"""

from pathlib import Path

import yaml

from querycache.config.settings import Settings
from querycache.models.query import QueryCacheOptions
from querycache.utils.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/querycache.yaml"

_CACHE_FIELDS = ("max_size", "stale_time", "refetch_on_invalidate")


def load_config(path: str = DEFAULT_CONFIG_PATH, settings: Settings | None = None) -> dict:
    """Load YAML config and merge explicitly-set environment settings on top.

    Args:
        path: Path to the YAML configuration file.  A missing file is an
              empty configuration.
        settings: Pre-built settings; read from the environment when omitted.

    Returns:
        Configuration dictionary with ``cache`` and ``logging`` sections.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"Top level of {config_path} must be a mapping")
    else:
        yaml_config = {}

    if settings is None:
        settings = Settings()
    explicit = settings.model_dump(exclude_unset=True)

    env_overrides: dict = {"cache": {}, "logging": {}}
    for field in _CACHE_FIELDS:
        if field in explicit:
            env_overrides["cache"][field] = explicit[field]
    if "log_level" in explicit:
        env_overrides["logging"]["level"] = explicit["log_level"]
    if "env" in explicit:
        env_overrides["logging"]["env"] = explicit["env"]

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_options(path: str = DEFAULT_CONFIG_PATH, settings: Settings | None = None) -> QueryCacheOptions:
    """Resolve the layered configuration into :class:`QueryCacheOptions`."""
    cache_section = load_config(path, settings).get("cache") or {}
    if not isinstance(cache_section, dict):
        raise ConfigurationError("'cache' section must be a mapping")
    return QueryCacheOptions(**{k: v for k, v in cache_section.items() if k in _CACHE_FIELDS})


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
