"""QueryCache -- the public facade over the query store.

# ─── HOW A QUERY IS SERVED ────────────────────────────────────────────
#
#   get_or_compute(key, fn)
#     1. hash the key            (InvalidKeyError for an empty key)
#     2. store full?             → call fn directly, cache nothing
#     3. entry for the hash?     → no: create it in the store
#     4. entry.get_data()        → fresh value, or the shared dispatch
#
# invalidate() selects entries by partial match (or exact identity),
# clears them and, by default, refetches them concurrently.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

import structlog

from querycache.core.key_hash import QueryKeyHash
from querycache.core.query import Clock, call_query_fn
from querycache.core.query_store import QueryStore
from querycache.interfaces.query_cache import IQueryCache
from querycache.models.query import (
    UNBOUNDED,
    QueryCacheOptions,
    QueryFunction,
    QueryFunctionContext,
    QueryKey,
    QueryState,
)
from querycache.utils.concurrency import gather_logged
from querycache.utils.logging import get_logger


class QueryCache(IQueryCache):
    """In-process cache of async producer results keyed by composite keys.

    Parameters
    ----------
    options:
        Initial policy.  Keyword arguments are used when omitted.
    max_size:
        Maximum number of entries (default unbounded).  Once reached, new
        keys are computed but not cached.
    stale_time:
        Default staleness window in milliseconds (default unbounded).
    refetch_on_invalidate:
        Default for :meth:`invalidate`'s ``refetch`` (default ``True``).
    clock:
        Millisecond clock for staleness and eviction ordering.
    """

    def __init__(
        self,
        options: QueryCacheOptions | None = None,
        *,
        max_size: float | None = None,
        stale_time: float | None = None,
        refetch_on_invalidate: bool | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._logger: structlog.BoundLogger = get_logger(__name__)
        self._store = QueryStore(clock=clock)
        self._refetch_on_invalidate = True
        if options is None:
            options = QueryCacheOptions(
                max_size=max_size,
                stale_time=stale_time,
                refetch_on_invalidate=refetch_on_invalidate,
            )
        self.configure(options)

    # ------------------------------------------------------------------
    # IQueryCache implementation
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        query_key: QueryKey,
        query_fn: QueryFunction,
        stale_time: float | None = None,
    ) -> Any:
        key_hash = QueryKeyHash.create(query_key)

        if self._store.is_full:
            self._logger.debug(
                "cache_bypass",
                query_key=query_key,
                size=self._store.size,
                max_size=self._store.max_size,
            )
            return await call_query_fn(query_fn, QueryFunctionContext(query_key=query_key))

        query = self._store.get(key_hash)
        if query is None:
            self._logger.debug("cache_miss", query_key=query_key)
            query = self._store.set(query_key, query_fn, stale_time=stale_time, query_key_hash=key_hash)
        else:
            self._logger.debug("cache_hit", query_key=query_key, state=query.state.value)
        return await query.get_data()

    async def invalidate(
        self,
        query_key: QueryKey | None = None,
        *,
        refetch: bool | None = None,
        exact: bool = False,
    ) -> None:
        if refetch is None:
            refetch = self._refetch_on_invalidate

        if query_key is None:
            queries = await self._store.invalidate_all(refetch)
        else:
            queries = self._store.find_queries(query_key, exact=exact)
            await gather_logged(
                [q.invalidate(refetch) for q in queries],
                logger=self._logger,
                error_msg="refetch_failed",
                labels=[q.query_key for q in queries],
            )

        self._logger.info(
            "cache_invalidated",
            query_key=query_key,
            exact=exact,
            refetch=refetch,
            matched=len(queries),
        )

    def clear(self, *, reset_options: bool = False) -> None:
        self._store.clear(reset_options=reset_options)
        if reset_options:
            self._refetch_on_invalidate = True
        self._logger.info("cache_cleared", reset_options=reset_options)

    def configure(self, options: QueryCacheOptions | None = None, **fields: Any) -> None:
        if options is None:
            options = QueryCacheOptions(**fields)
        self._store.set_options(options)
        if options.refetch_on_invalidate is not None:
            self._refetch_on_invalidate = options.refetch_on_invalidate
        self._logger.debug(
            "cache_options_updated",
            max_size=self._store.max_size,
            stale_time=self._store.stale_time,
            refetch_on_invalidate=self._refetch_on_invalidate,
        )

    def get_state(self, query_key: QueryKey) -> QueryState | None:
        query = self._store.get(QueryKeyHash.create(query_key))
        return query.state if query is not None else None

    @property
    def size(self) -> int:
        return self._store.size

    # ------------------------------------------------------------------
    # Read-only policy
    # ------------------------------------------------------------------

    @property
    def max_size(self) -> float:
        return self._store.max_size

    @property
    def stale_time(self) -> float:
        return self._store.stale_time

    @property
    def refetch_on_invalidate(self) -> bool:
        return self._refetch_on_invalidate

    @property
    def options(self) -> QueryCacheOptions:
        """Snapshot of the effective policy."""
        return QueryCacheOptions(
            max_size=self._store.max_size,
            stale_time=self._store.stale_time,
            refetch_on_invalidate=self._refetch_on_invalidate,
        )

    def __repr__(self) -> str:
        limit = "unbounded" if self._store.max_size == UNBOUNDED else int(self._store.max_size)
        return f"QueryCache(size={self._store.size}, max_size={limit})"
