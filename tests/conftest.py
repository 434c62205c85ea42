"""Shared pytest fixtures for the querycache test suite."""

from __future__ import annotations

from typing import Any

import pytest

from querycache.cache import QueryCache
from querycache.models.query import QueryFunctionContext


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class CountingProducer:
    """Async producer returning 1, 2, 3, ... and recording every call."""

    def __init__(self) -> None:
        self.calls = 0
        self.contexts: list[QueryFunctionContext] = []

    async def __call__(self, context: QueryFunctionContext) -> int:
        self.calls += 1
        self.contexts.append(context)
        return self.calls


class ConstantProducer:
    """Async producer returning a fixed value."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        return self.value


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(clock=clock)


@pytest.fixture()
def counter() -> CountingProducer:
    return CountingProducer()
