"""Query lifecycle and configuration models.

``QueryState`` names the four states a cached query moves through.
``QueryCacheOptions`` is the pydantic model for store-wide policy; negative
limits are dropped to ``None`` by its validator, which is how misconfigured
values end up ignored rather than rejected.
``QueryFunctionContext`` is what a producer receives when it accepts an
argument.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, field_validator

from querycache.utils.concurrency import CancellationSignal

# A single key segment: primitives, string-keyed mappings or nested sequences.
KeySegment = Union[str, int, float, bool, None, Mapping[str, Any], Sequence[Any]]
QueryKey = Sequence[KeySegment]

UNBOUNDED = math.inf


class QueryState(str, Enum):  # noqa: UP042
    """Lifecycle of one cached query.

        EMPTY --access--> PRODUCING --success--> FRESH --time--> STALE
          ^                   |                                   |
          +----failure--------+          <------access------------+

    Invalidation moves any state back to EMPTY (or straight to PRODUCING
    when it refetches).
    """

    EMPTY = "EMPTY"            # No value, nothing in flight
    PRODUCING = "PRODUCING"    # A dispatch is in flight
    FRESH = "FRESH"            # Value present and inside its stale window
    STALE = "STALE"            # Value present, stale window elapsed


@dataclass(frozen=True)
class QueryFunctionContext:
    """Passed to producers that accept one positional argument."""

    query_key: QueryKey
    signal: CancellationSignal = field(default_factory=CancellationSignal)


QueryFunction = Callable[..., Union[Awaitable[Any], Any]]


class QueryCacheOptions(BaseModel):
    """Store-wide cache policy.

    ``None`` means "leave unchanged" when applied to an existing store.
    Sizes and durations below zero are coerced to ``None`` so they never
    override a valid setting.  ``stale_time`` is in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    max_size: int | float | None = None
    stale_time: int | float | None = None
    refetch_on_invalidate: bool | None = None

    @field_validator("max_size", "stale_time", mode="before")
    @classmethod
    def _drop_negative(cls, value: Any) -> Any:
        if value is None:
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        return None if number < 0 else value

    @classmethod
    def unbounded(cls) -> QueryCacheOptions:
        """Options that lift every size and staleness limit."""
        return cls(max_size=UNBOUNDED, stale_time=UNBOUNDED)
