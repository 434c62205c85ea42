"""Bounded store of cached queries with least-recently-produced eviction.

The store maps a :class:`QueryKeyHash` identity to its :class:`Query`
entry.  Storage is a ``cachetools.Cache`` whose ``popitem`` is overridden:
cachetools asks for a victim whenever an insert would exceed ``maxsize``,
and the victim is the entry produced longest ago (never-produced entries
first, ties resolved by insertion order).  Because cachetools evicts
*before* inserting, the entry being inserted is never its own victim.

``max_size`` can change at runtime.  cachetools fixes ``maxsize`` at
construction, so a resize rebuilds the backing cache after destroying the
entries that no longer fit.

All bookkeeping here is synchronous; on a single event loop every method
runs to completion without interleaving with other cache operations.
"""

from __future__ import annotations

import math
from typing import Any, Iterator

import structlog
from cachetools import Cache

from querycache.core.key_hash import QueryKeyHash, canonicalize_key
from querycache.core.key_match import match_query
from querycache.core.query import Clock, Query
from querycache.models.query import UNBOUNDED, QueryCacheOptions, QueryFunction, QueryKey
from querycache.utils.concurrency import gather_logged
from querycache.utils.logging import get_logger


def _production_order(query: Query) -> float:
    return query.timestamp if query.timestamp is not None else -math.inf


class _ProducedOrderCache(Cache):
    """``cachetools.Cache`` evicting the least-recently-produced query."""

    def __init__(self, maxsize: float, logger: structlog.BoundLogger) -> None:
        super().__init__(maxsize=maxsize)
        self._logger = logger

    def popitem(self) -> tuple[str, Query]:
        try:
            # min() keeps the first of equal keys: insertion order breaks ties.
            identity = min(self, key=lambda k: _production_order(self[k]))
        except ValueError:
            raise KeyError(f"{type(self).__name__} is empty") from None
        query = self.pop(identity)
        query.destroy(reason="evicted")
        self._logger.info("query_evicted", key_hash=identity, query_key=query.query_key)
        return identity, query


class QueryStore:
    """Bounded mapping from key identity to :class:`Query`.

    Independent instances share nothing, so a process can hold any number
    of stores (one per :class:`querycache.cache.QueryCache`).

    Parameters
    ----------
    max_size:
        Maximum number of entries; ``math.inf`` for unbounded.
    stale_time:
        Default staleness window in milliseconds for new entries.
    clock:
        Millisecond clock handed to every entry this store creates.
    """

    def __init__(
        self,
        max_size: float = UNBOUNDED,
        stale_time: float = UNBOUNDED,
        clock: Clock | None = None,
    ) -> None:
        self._logger: structlog.BoundLogger = get_logger(__name__)
        self._max_size = max_size
        self._stale_time = stale_time
        self._clock = clock
        self._cache = _ProducedOrderCache(max_size, self._logger)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def max_size(self) -> float:
        return self._max_size

    @property
    def stale_time(self) -> float:
        return self._stale_time

    @property
    def is_full(self) -> bool:
        return len(self._cache) >= self._max_size

    def __len__(self) -> int:
        return len(self._cache)

    def __iter__(self) -> Iterator[Query]:
        return iter(list(self._cache.values()))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_options(self, options: QueryCacheOptions | None = None, **fields: Any) -> None:
        """Update ``max_size`` and/or the default ``stale_time``.

        Negative values are ignored.  Lowering ``max_size`` below the
        current size evicts immediately.
        """
        if options is None:
            options = QueryCacheOptions(**fields)

        if options.stale_time is not None:
            self._stale_time = options.stale_time

        if options.max_size is not None and options.max_size != self._max_size:
            self._resize(options.max_size)

    def _resize(self, max_size: float) -> None:
        queries = list(self._cache.items())
        overflow = len(queries) - max_size
        doomed: set[str] = set()
        if overflow > 0:
            # sorted() is stable, so equal timestamps keep insertion order.
            by_production = sorted(queries, key=lambda item: _production_order(item[1]))
            for identity, query in by_production[: int(overflow)]:
                doomed.add(identity)
                query.destroy(reason="evicted")
                self._logger.info("query_evicted", key_hash=identity, query_key=query.query_key)

        self._max_size = max_size
        self._cache = _ProducedOrderCache(max_size, self._logger)
        for identity, query in queries:
            if identity not in doomed:
                self._cache[identity] = query

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def set(
        self,
        query_key: QueryKey,
        query_fn: QueryFunction,
        stale_time: float | None = None,
        query_key_hash: QueryKeyHash | None = None,
    ) -> Query:
        """Create an entry for *query_key*, insert it and return it.

        ``stale_time`` overrides the store default for this entry only.  An
        existing entry with the same identity is destroyed and replaced.
        """
        query: Query = Query(
            query_key,
            query_fn,
            stale_time=self._stale_time if stale_time is None else stale_time,
            query_key_hash=query_key_hash,
            clock=self._clock,
        )
        identity = str(query.query_key_hash)
        previous = self._cache.get(identity)
        if previous is not None:
            previous.destroy(reason="replaced")
        if self._max_size <= 0:
            # cachetools refuses any item when maxsize is 0
            query.destroy(reason="evicted")
            return query
        self._cache[identity] = query
        return query

    def get(self, query_key_hash: QueryKeyHash) -> Query | None:
        return self._cache.get(str(query_key_hash))

    def exists(self, query_key: QueryKey) -> bool:
        return str(QueryKeyHash.create(query_key)) in self._cache

    def find_queries(self, query_key: QueryKey | None = None, exact: bool = False) -> list[Query]:
        """Return entries selected by *query_key* (all entries when ``None``).

        Raises :class:`InvalidKeyError` for an empty or non-sequence pattern,
        exact or not.
        """
        queries = list(self._cache.values())
        if query_key is None:
            return queries
        canonicalize_key(query_key)
        key_hash = QueryKeyHash.create(query_key) if exact else None
        return [q for q in queries if match_query(query_key, q, exact=exact, key_hash=key_hash)]

    async def invalidate(self, query_key_hash: QueryKeyHash, refetch: bool = True) -> None:
        query = self.get(query_key_hash)
        if query is not None:
            await query.invalidate(refetch)

    async def invalidate_all(self, refetch: bool = True) -> list[Query]:
        """Invalidate every entry; refetches run concurrently, failures are logged."""
        queries = list(self._cache.values())
        await gather_logged(
            [q.invalidate(refetch) for q in queries],
            logger=self._logger,
            error_msg="refetch_failed",
            labels=[q.query_key for q in queries],
        )
        return queries

    def clear(self, reset_options: bool = False) -> None:
        """Destroy every entry and empty the store."""
        removed = len(self._cache)
        for query in list(self._cache.values()):
            query.destroy(reason="cleared")
        if reset_options:
            self._max_size = UNBOUNDED
            self._stale_time = UNBOUNDED
        self._cache = _ProducedOrderCache(self._max_size, self._logger)
        self._logger.info("store_cleared", removed=removed, reset_options=reset_options)
