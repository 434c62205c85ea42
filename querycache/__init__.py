"""querycache -- in-process result cache for async producer functions.

Typical use::

    from querycache import QueryCache

    cache = QueryCache(max_size=500, stale_time=30_000)

    async def load_user(ctx):
        ctx.signal.raise_if_cancelled()
        return await fetch_user(42)

    user = await cache.get_or_compute(["users", {"id": 42}], load_user)
    await cache.invalidate(["users"])          # every key starting with "users"
"""

from querycache.cache import QueryCache
from querycache.core.key_hash import QueryKeyHash
from querycache.core.key_match import partial_match_key
from querycache.interfaces.query_cache import IQueryCache
from querycache.models.query import QueryCacheOptions, QueryFunctionContext, QueryState
from querycache.utils.concurrency import CancellationSignal
from querycache.utils.errors import (
    ConfigurationError,
    InvalidKeyError,
    QueryCacheError,
    QueryCancelledError,
)
from querycache.utils.logging import configure_logging

__version__ = "0.1.0"

__all__ = [
    "CancellationSignal",
    "ConfigurationError",
    "IQueryCache",
    "InvalidKeyError",
    "QueryCache",
    "QueryCacheError",
    "QueryCacheOptions",
    "QueryCancelledError",
    "QueryFunctionContext",
    "QueryKeyHash",
    "QueryState",
    "configure_logging",
    "partial_match_key",
]
