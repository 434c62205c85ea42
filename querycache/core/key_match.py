"""Partial matching of composite keys for pattern invalidation.

``partial_match_key(pattern, candidate)`` is true when *pattern* is a
structural prefix/subset of *candidate*:

- primitives match when they are the same kind and equal
  (``"1"`` never matches ``1``; ``True`` never matches ``1``)
- sequences match when the pattern is no longer than the candidate and
  every positional element matches (``["users"]`` covers
  ``["users", "list"]``, not the other way round)
- mappings match when every pattern field exists in the candidate with a
  matching value; extra candidate fields are ignored
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from querycache.core.key_hash import QueryKeyHash
from querycache.models.query import QueryKey

if TYPE_CHECKING:
    from querycache.core.query import Query


def _kind(value: Any) -> str:
    # bool before int: bool is an int subclass
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "sequence"
    return type(value).__name__


def partial_match_key(pattern: Any, candidate: Any) -> bool:
    """Return ``True`` if *pattern* covers *candidate* (see module docstring)."""
    kind = _kind(pattern)
    if kind != _kind(candidate):
        return False

    if kind == "sequence":
        if len(pattern) > len(candidate):
            return False
        return all(partial_match_key(item, candidate[idx]) for idx, item in enumerate(pattern))

    if kind == "mapping":
        return all(
            name in candidate and partial_match_key(value, candidate[name])
            for name, value in pattern.items()
        )

    return pattern == candidate


def match_query(
    query_key: QueryKey,
    query: Query,
    exact: bool = False,
    key_hash: QueryKeyHash | None = None,
) -> bool:
    """Decide whether an invalidation for *query_key* selects *query*.

    ``exact`` compares key identities (no prefix tolerance); otherwise the
    recursive partial match is used.  Pass *key_hash* when scanning many
    queries so the pattern is hashed only once.
    """
    if exact:
        if key_hash is None:
            key_hash = QueryKeyHash.create(query_key)
        return key_hash == query.query_key_hash
    return partial_match_key(query_key, query.query_key)
