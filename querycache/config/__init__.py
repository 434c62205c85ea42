"""Configuration module -- exports Settings and the YAML loaders."""

from querycache.config.loader import load_config, load_options
from querycache.config.settings import Settings

__all__ = ["Settings", "load_config", "load_options"]
