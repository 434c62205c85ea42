"""Custom exception hierarchy for querycache.

All library exceptions inherit from :class:`QueryCacheError`, which carries
an optional ``query_key`` so error handlers and log lines can identify which
cached query was involved.

    QueryCacheError        (base -- catch-all for any querycache error)
    +-- InvalidKeyError    (empty or unserializable composite key)
    +-- QueryCancelledError (a dispatch observed its cancellation signal)
    +-- ConfigurationError (malformed configuration file or values)

Errors raised by a producer function are never wrapped in this hierarchy:
they propagate verbatim to every caller awaiting that dispatch.
"""

from __future__ import annotations

from typing import Any


class QueryCacheError(Exception):
    """Base exception for all querycache errors.

    The ``__str__`` method appends the offending key in brackets so log
    output stays greppable, e.g. ``Keys must be provided [key=[]]``.
    """

    def __init__(
        self,
        message: str = "An unexpected cache error occurred",
        query_key: Any | None = None,
    ) -> None:
        self._message = message
        self._query_key = query_key
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def query_key(self) -> Any | None:
        return self._query_key

    def __str__(self) -> str:
        if self._query_key is not None:
            return f"{self._message} [key={self._query_key!r}]"
        return self._message


class InvalidKeyError(QueryCacheError):
    """Raised when a composite key is empty or cannot be canonicalized.

    Raised before any producer is dispatched.
    """

    def __init__(
        self,
        message: str = "Keys must be provided",
        query_key: Any | None = None,
    ) -> None:
        super().__init__(message=message, query_key=query_key)


class QueryCancelledError(QueryCacheError):
    """Raised inside a cooperative producer once its dispatch was cancelled.

    Only callers already awaiting the cancelled dispatch can observe it;
    whoever triggered the cancellation (``clear``, ``invalidate``, eviction)
    is not awaiting that result.
    """

    def __init__(
        self,
        message: str = "Query was cancelled",
        query_key: Any | None = None,
    ) -> None:
        super().__init__(message=message, query_key=query_key)


class ConfigurationError(QueryCacheError):
    """Raised when configuration is invalid or cannot be loaded."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        query_key: Any | None = None,
    ) -> None:
        super().__init__(message=message, query_key=query_key)
