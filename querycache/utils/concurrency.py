"""Cooperative cancellation and fan-out helpers for cache dispatches.

Two primitives are exposed:

1. **CancellationSignal** -- a one-shot flag handed to every producer
   dispatch.  ``clear``, ``invalidate`` and eviction fire it; a producer
   that cares polls ``cancelled``, awaits ``wait()`` or calls
   ``raise_if_cancelled()``.  Whether or not the producer honours it, the
   owning entry discards the dispatch's outcome once the signal has fired.

2. **gather_logged** -- the fan-out/merge pattern used for invalidation
   refetches: run the awaitables concurrently, log the failures, return
   only the successes.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

import structlog

from querycache.utils.errors import QueryCancelledError
from querycache.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class CancellationSignal:
    """One-shot cancellation flag shared between an entry and its producer."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the signal.  Subsequent calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the signal fires."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`QueryCancelledError` when the signal has fired."""
        if self._event.is_set():
            raise QueryCancelledError(f"Query was cancelled ({self._reason})")

    def __repr__(self) -> str:
        state = f"cancelled:{self._reason}" if self.cancelled else "active"
        return f"CancellationSignal({state})"


async def gather_logged(
    coros: list[Awaitable[_T]],
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "task_failed",
    labels: list[Any] | None = None,
) -> list[_T]:
    """Run awaitables concurrently and return the successful results.

    Failures are logged as *error_msg* (with the matching entry of
    *labels*, when given) and dropped, so one failing refetch cannot abort
    an invalidation sweep.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    logger:
        Structured logger for failures.  Defaults to this module's logger.
    error_msg:
        Event name logged for each failure.
    labels:
        Optional per-awaitable context (e.g. the query key) for log lines.

    Returns
    -------
    list[_T]
        Results of the awaitables that completed successfully, in order.
    """
    if logger is None:
        logger = _logger

    raw_results = await asyncio.gather(*coros, return_exceptions=True)

    results: list[_T] = []
    for idx, result in enumerate(raw_results):
        if isinstance(result, BaseException):
            label = labels[idx] if labels is not None else idx
            logger.warning(
                error_msg,
                target=label,
                error=str(result),
                error_type=type(result).__name__,
            )
        else:
            results.append(result)
    return results
