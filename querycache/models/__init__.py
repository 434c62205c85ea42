"""querycache data models -- re-exports the public model names."""

from __future__ import annotations

from querycache.models.query import (
    UNBOUNDED,
    KeySegment,
    QueryCacheOptions,
    QueryFunction,
    QueryFunctionContext,
    QueryKey,
    QueryState,
)

__all__ = [
    "KeySegment",
    "QueryCacheOptions",
    "QueryFunction",
    "QueryFunctionContext",
    "QueryKey",
    "QueryState",
    "UNBOUNDED",
]
