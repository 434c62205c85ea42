"""Abstract base class for key-addressed query caches.

Application code depends on ``IQueryCache`` rather than on a concrete
cache, so a test can inject a fake and a future backend can be swapped in
without touching call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from querycache.models.query import QueryCacheOptions, QueryFunction, QueryKey, QueryState


class IQueryCache(ABC):
    """Contract for query-result caches.

    Queries and invalidations are async because they may await a producer;
    clearing, configuring and sizing never suspend.
    """

    @abstractmethod
    async def get_or_compute(
        self,
        query_key: QueryKey,
        query_fn: QueryFunction,
        stale_time: float | None = None,
    ) -> Any:
        """Return the cached value for *query_key*, producing it if needed.

        Parameters
        ----------
        query_key:
            Non-empty composite key identifying the query.
        query_fn:
            Producer, called with no arguments or with a
            :class:`~querycache.models.query.QueryFunctionContext`.
        stale_time:
            Per-entry staleness window in milliseconds; overrides the cache
            default when the entry is created.

        Raises
        ------
        InvalidKeyError
            If *query_key* is empty or cannot be canonicalized.
        """

    @abstractmethod
    async def invalidate(
        self,
        query_key: QueryKey | None = None,
        *,
        refetch: bool | None = None,
        exact: bool = False,
    ) -> None:
        """Clear cached values selected by *query_key* (all when ``None``).

        Parameters
        ----------
        query_key:
            Pattern key; entries it partially matches are invalidated.
        refetch:
            Re-produce the invalidated values immediately.  ``None`` uses the
            cache-wide ``refetch_on_invalidate`` setting.
        exact:
            Only invalidate the entry whose identity equals *query_key*'s.
        """

    @abstractmethod
    def clear(self, *, reset_options: bool = False) -> None:
        """Destroy every entry, optionally restoring unbounded options."""

    @abstractmethod
    def configure(self, options: QueryCacheOptions | None = None, **fields: Any) -> None:
        """Update cache-wide policy; negative values are ignored."""

    @abstractmethod
    def get_state(self, query_key: QueryKey) -> QueryState | None:
        """Return the lifecycle state of *query_key*'s entry, ``None`` if absent."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of entries currently held."""
