"""Utility modules for querycache.

- **errors** -- exception hierarchy rooted at QueryCacheError.
- **logging** -- structlog setup with console/JSON dual rendering.
- **concurrency** -- CancellationSignal and the gather_logged fan-out helper.
"""

from querycache.utils.concurrency import CancellationSignal, gather_logged
from querycache.utils.errors import (
    ConfigurationError,
    InvalidKeyError,
    QueryCacheError,
    QueryCancelledError,
)
from querycache.utils.logging import configure_logging, get_logger

__all__ = [
    "CancellationSignal",
    "ConfigurationError",
    "InvalidKeyError",
    "QueryCacheError",
    "QueryCancelledError",
    "configure_logging",
    "gather_logged",
    "get_logger",
]
