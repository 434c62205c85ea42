"""Unit tests for the Query entry: freshness, single-flight and cancellation."""

from __future__ import annotations

import asyncio
import math

import pytest

from querycache.core.query import Query, call_query_fn
from querycache.models.query import QueryFunctionContext, QueryState
from querycache.utils.errors import QueryCancelledError
from tests.conftest import CountingProducer, FakeClock


def _query(producer, clock: FakeClock, stale_time: float = math.inf) -> Query:
    return Query(["entry-test"], producer, stale_time=stale_time, clock=clock)


# ======================================================================
# call_query_fn
# ======================================================================


class TestCallQueryFn:
    @pytest.mark.asyncio
    async def test_zero_argument_coroutine(self) -> None:
        async def producer() -> str:
            return "plain"

        assert await call_query_fn(producer, QueryFunctionContext(query_key=["k"])) == "plain"

    @pytest.mark.asyncio
    async def test_context_passed_when_accepted(self) -> None:
        seen: list[QueryFunctionContext] = []

        async def producer(context: QueryFunctionContext) -> str:
            seen.append(context)
            return "ctx"

        context = QueryFunctionContext(query_key=["k"])
        assert await call_query_fn(producer, context) == "ctx"
        assert seen == [context]

    @pytest.mark.asyncio
    async def test_sync_callable_value(self) -> None:
        assert await call_query_fn(lambda: 42, QueryFunctionContext(query_key=["k"])) == 42


# ======================================================================
# Freshness
# ======================================================================


class TestQueryFreshness:
    @pytest.mark.asyncio
    async def test_new_entry_is_empty(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock)
        assert query.state is QueryState.EMPTY
        assert query.timestamp is None
        assert query.is_set is False

    @pytest.mark.asyncio
    async def test_fresh_value_reused(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock)
        assert await query.get_data() == 1
        assert await query.get_data() == 1
        assert counter.calls == 1
        assert query.state is QueryState.FRESH
        assert query.timestamp == clock.now

    @pytest.mark.asyncio
    async def test_stale_after_window(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock, stale_time=100)
        assert await query.get_data() == 1
        clock.advance(99)
        assert query.state is QueryState.FRESH
        clock.advance(1)
        assert query.state is QueryState.STALE
        assert await query.get_data() == 2

    @pytest.mark.asyncio
    async def test_zero_stale_time_always_refetches(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock, stale_time=0)
        await query.get_data()
        await query.get_data()
        await query.get_data()
        assert counter.calls == 3

    @pytest.mark.asyncio
    async def test_unbounded_never_stale(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock)
        await query.get_data()
        clock.advance(10**12)
        assert query.state is QueryState.FRESH

    @pytest.mark.asyncio
    async def test_none_value_is_cached(self, clock: FakeClock) -> None:
        calls = 0

        async def producer() -> None:
            nonlocal calls
            calls += 1
            return None

        query = _query(producer, clock)
        assert await query.get_data() is None
        assert await query.get_data() is None
        assert calls == 1
        assert query.is_set is True


# ======================================================================
# Single-flight
# ======================================================================


class TestQuerySingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_dispatch(self, clock: FakeClock) -> None:
        release = asyncio.Event()
        calls = 0

        async def producer() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "shared"

        query = _query(producer, clock)
        assert query.is_fetching is False
        waiters = [asyncio.create_task(query.get_data()) for _ in range(5)]
        await asyncio.sleep(0)
        assert query.is_fetching is True
        assert query.state is QueryState.PRODUCING

        release.set()
        results = await asyncio.gather(*waiters)

        assert results == ["shared"] * 5
        assert calls == 1
        assert query.is_fetching is False
        assert query.state is QueryState.FRESH

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_empties_entry(self, clock: FakeClock) -> None:
        release = asyncio.Event()

        async def producer() -> str:
            await release.wait()
            raise RuntimeError("backend down")

        query = _query(producer, clock)
        waiters = [asyncio.create_task(query.get_data()) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) and str(r) == "backend down" for r in results)
        assert query.state is QueryState.EMPTY
        assert query.timestamp is None

    @pytest.mark.asyncio
    async def test_failure_drops_stale_value(self, clock: FakeClock) -> None:
        outcomes = iter(["first", RuntimeError("boom")])

        async def producer() -> str:
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        query = _query(producer, clock, stale_time=10)
        assert await query.get_data() == "first"
        clock.advance(10)
        with pytest.raises(RuntimeError, match="boom"):
            await query.get_data()
        assert query.is_set is False

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, clock: FakeClock) -> None:
        attempts = 0

        async def producer() -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ValueError("transient")
            return attempts

        query = _query(producer, clock)
        with pytest.raises(ValueError):
            await query.get_data()
        assert await query.get_data() == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_dispatch(self, clock: FakeClock) -> None:
        release = asyncio.Event()

        async def producer() -> str:
            await release.wait()
            return "survived"

        query = _query(producer, clock)
        impatient = asyncio.create_task(query.get_data())
        patient = asyncio.create_task(query.get_data())
        await asyncio.sleep(0)
        impatient.cancel()
        await asyncio.sleep(0)
        release.set()

        assert await patient == "survived"
        assert impatient.cancelled()
        assert query.state is QueryState.FRESH


# ======================================================================
# Invalidation and cancellation
# ======================================================================


class TestQueryCancellation:
    @pytest.mark.asyncio
    async def test_invalidate_without_refetch_empties(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock)
        await query.get_data()
        await query.invalidate(refetch=False)
        assert query.state is QueryState.EMPTY
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_with_refetch_repopulates(self, clock: FakeClock, counter: CountingProducer) -> None:
        query = _query(counter, clock)
        await query.get_data()
        await query.invalidate(refetch=True)
        assert counter.calls == 2
        assert query.state is QueryState.FRESH
        assert await query.get_data() == 2

    @pytest.mark.asyncio
    async def test_clear_fires_signal(self, clock: FakeClock) -> None:
        started = asyncio.Event()
        signals = []

        async def producer(context: QueryFunctionContext) -> str:
            signals.append(context.signal)
            started.set()
            await context.signal.wait()
            context.signal.raise_if_cancelled()
            return "unreachable"

        query = _query(producer, clock)
        waiter = asyncio.create_task(query.get_data())
        await started.wait()
        query.clear()

        with pytest.raises(QueryCancelledError):
            await waiter
        assert signals[0].cancelled is True
        assert signals[0].reason == "cleared"
        assert query.state is QueryState.EMPTY

    @pytest.mark.asyncio
    async def test_late_result_discarded_after_cancel(self, clock: FakeClock) -> None:
        release = asyncio.Event()

        async def stubborn() -> str:
            await release.wait()
            return "late"

        query = _query(stubborn, clock)
        waiter = asyncio.create_task(query.get_data())
        await asyncio.sleep(0)
        query.cancel()
        release.set()

        # The caller that was already waiting still gets the outcome...
        assert await waiter == "late"
        # ...but the entry never saw it.
        assert query.is_set is False
        assert query.state is QueryState.EMPTY

    @pytest.mark.asyncio
    async def test_late_failure_does_not_touch_newer_value(self, clock: FakeClock) -> None:
        first_release = asyncio.Event()
        calls = 0

        async def producer() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                await first_release.wait()
                raise RuntimeError("stale failure")
            return "fresh"

        query = _query(producer, clock)
        first = asyncio.create_task(query.get_data())
        await asyncio.sleep(0)

        await query.invalidate(refetch=True)
        assert query.state is QueryState.FRESH

        first_release.set()
        with pytest.raises(RuntimeError):
            await first
        assert query.state is QueryState.FRESH
        assert await query.get_data() == "fresh"
