"""Process-wide default cache for applications that want just one.

The engine never depends on this module: every :class:`QueryCache` is
independent.  The default instance is built lazily from the layered
configuration (:func:`querycache.config.load_options`) on first use.
"""

from __future__ import annotations

from typing import Any

from querycache.cache import QueryCache
from querycache.config.loader import DEFAULT_CONFIG_PATH, load_options
from querycache.models.query import QueryCacheOptions, QueryFunction, QueryKey

_default_cache: QueryCache | None = None


def get_default_cache(config_path: str = DEFAULT_CONFIG_PATH) -> QueryCache:
    """Return the process-wide cache, creating it on first call."""
    global _default_cache
    if _default_cache is None:
        _default_cache = QueryCache(load_options(config_path))
    return _default_cache


def reset_default_cache() -> None:
    """Clear and forget the process-wide cache (mainly for tests)."""
    global _default_cache
    if _default_cache is not None:
        _default_cache.clear()
    _default_cache = None


async def get_or_compute(query_key: QueryKey, query_fn: QueryFunction, stale_time: float | None = None) -> Any:
    return await get_default_cache().get_or_compute(query_key, query_fn, stale_time=stale_time)


async def invalidate(
    query_key: QueryKey | None = None,
    *,
    refetch: bool | None = None,
    exact: bool = False,
) -> None:
    await get_default_cache().invalidate(query_key, refetch=refetch, exact=exact)


def clear(*, reset_options: bool = False) -> None:
    get_default_cache().clear(reset_options=reset_options)


def configure(options: QueryCacheOptions | None = None, **fields: Any) -> None:
    get_default_cache().configure(options, **fields)


def size() -> int:
    return get_default_cache().size
