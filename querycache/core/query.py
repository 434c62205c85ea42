"""A single cached query: its value, freshness and in-flight dispatch.

# ─── HOW A QUERY ENTRY WORKS ──────────────────────────────────────────
#
#   get_data() ──fresh?──→ return cached value
#        │
#        └─stale/empty──→ _dispatch() ──→ one shared asyncio.Task
#                                          │   (every concurrent caller
#                                          │    awaits the same task)
#                                          ├─ success → store value + timestamp
#                                          └─ failure → revert to EMPTY, re-raise
#
# Each dispatch gets its own CancellationSignal.  clear()/invalidate()
# fire the signal and detach the task; when the detached task finishes it
# sees the fired signal and leaves the entry alone, so a late result can
# never overwrite a newer one.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Generic, TypeVar

import structlog

from querycache.core.key_hash import QueryKeyHash
from querycache.models.query import (
    UNBOUNDED,
    QueryFunction,
    QueryFunctionContext,
    QueryKey,
    QueryState,
)
from querycache.utils.concurrency import CancellationSignal
from querycache.utils.logging import get_logger

T = TypeVar("T")

Clock = Callable[[], float]

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.VAR_POSITIONAL,
)


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000.0


def _accepts_context(query_fn: QueryFunction) -> bool:
    try:
        signature = inspect.signature(query_fn)
    except (TypeError, ValueError):
        return False
    return any(param.kind in _POSITIONAL for param in signature.parameters.values())


async def call_query_fn(query_fn: QueryFunction, context: QueryFunctionContext) -> Any:
    """Invoke a producer, passing *context* only if it takes an argument.

    Coroutine functions, callables returning an awaitable and plain
    synchronous callables are all accepted.
    """
    if _accepts_context(query_fn):
        result = query_fn(context)
    else:
        result = query_fn()
    if inspect.isawaitable(result):
        result = await result
    return result


def _retrieve_exception(task: asyncio.Task) -> None:
    # A detached dispatch may fail with nobody awaiting it any more.
    if not task.cancelled():
        task.exception()


class Query(Generic[T]):
    """One cache slot: value, production timestamp and staleness window.

    The producer is fixed when the entry is created and reused for every
    refetch, including refetches triggered by invalidation.

    Parameters
    ----------
    query_key:
        The composite key, kept for partial-match scans.
    query_fn:
        Producer called on every dispatch.
    stale_time:
        Milliseconds a produced value stays fresh.  ``0`` re-dispatches on
        every access; ``math.inf`` never goes stale.
    query_key_hash:
        Precomputed identity; hashed from *query_key* when omitted.
    clock:
        Millisecond clock, injectable for tests.
    """

    def __init__(
        self,
        query_key: QueryKey,
        query_fn: QueryFunction,
        stale_time: float = UNBOUNDED,
        query_key_hash: QueryKeyHash | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._query_key = query_key
        self._query_key_hash = query_key_hash or QueryKeyHash.create(query_key)
        self._query_fn = query_fn
        self._stale_time = stale_time
        self._clock = clock or monotonic_ms

        self._is_set = False
        self._data: T | None = None
        self._timestamp: float | None = None

        self._pending: asyncio.Task | None = None
        self._signal: CancellationSignal | None = None

        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def query_key(self) -> QueryKey:
        return self._query_key

    @property
    def query_key_hash(self) -> QueryKeyHash:
        return self._query_key_hash

    @property
    def stale_time(self) -> float:
        return self._stale_time

    @property
    def timestamp(self) -> float | None:
        """Clock reading of the last successful production, ``None`` if never."""
        return self._timestamp

    @property
    def is_set(self) -> bool:
        return self._is_set

    @property
    def is_fetching(self) -> bool:
        return self._pending is not None

    @property
    def state(self) -> QueryState:
        if self.is_fetching:
            return QueryState.PRODUCING
        if not self._is_set:
            return QueryState.EMPTY
        return QueryState.STALE if self.is_stale() else QueryState.FRESH

    def is_stale(self) -> bool:
        if not self._is_set or self._timestamp is None:
            return True
        return self._clock() - self._timestamp >= self._stale_time

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def get_data(self) -> T:
        """Return the fresh value, or join/start a dispatch and await it."""
        if self._is_set and not self.is_stale():
            return self._data  # type: ignore[return-value]
        return await self._dispatch()

    async def invalidate(self, refetch: bool = True) -> None:
        """Drop the value; with *refetch*, immediately produce a new one."""
        self.clear(reason="invalidated")
        if refetch:
            await self._dispatch()

    def clear(self, reason: str = "cleared") -> None:
        """Drop the value and cancel any in-flight dispatch."""
        self._reset_data()
        self.cancel(reason)

    def destroy(self, reason: str = "destroyed") -> None:
        """Release the entry for good (store clear or eviction)."""
        self.clear(reason=reason)

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the in-flight dispatch's signal and detach it from the entry."""
        if self._signal is not None:
            self._signal.cancel(reason)
            self._logger.debug(
                "query_cancel_requested",
                key_hash=str(self._query_key_hash),
                reason=reason,
            )
        self._signal = None
        self._pending = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _dispatch(self) -> asyncio.Future:
        if self._pending is None:
            signal = CancellationSignal()
            task = asyncio.create_task(self._run(signal))
            task.add_done_callback(_retrieve_exception)
            self._signal = signal
            self._pending = task
        # shield: one awaiting caller being cancelled must not cancel the
        # dispatch the other callers share.
        return asyncio.shield(self._pending)

    async def _run(self, signal: CancellationSignal) -> T:
        key_hash = str(self._query_key_hash)
        context = QueryFunctionContext(query_key=self._query_key, signal=signal)
        self._logger.debug("query_dispatch", key_hash=key_hash)
        try:
            data = await call_query_fn(self._query_fn, context)
        except Exception as exc:
            if signal.cancelled:
                self._logger.warning(
                    "query_cancelled",
                    key_hash=key_hash,
                    reason=signal.reason,
                    error=str(exc),
                )
            else:
                self._logger.info(
                    "query_failed",
                    key_hash=key_hash,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self._reset_data()
            raise
        finally:
            if self._signal is signal:
                self._signal = None
                self._pending = None

        if signal.cancelled:
            self._logger.info("query_result_discarded", key_hash=key_hash, reason=signal.reason)
            return data

        self._set_data(data)
        self._logger.debug("query_settled", key_hash=key_hash)
        return data

    def _set_data(self, data: T) -> None:
        self._data = data
        self._is_set = True
        self._timestamp = self._clock()

    def _reset_data(self) -> None:
        self._data = None
        self._is_set = False
        self._timestamp = None

    def __repr__(self) -> str:
        return f"Query(key={self._query_key!r}, state={self.state.value})"
