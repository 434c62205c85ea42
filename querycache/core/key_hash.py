"""Composite-key canonicalization and hashing.

A composite key is serialized to compact JSON -- segment order and mapping
insertion order are preserved, not sorted -- and the UTF-8 bytes are
digested with SHA-256.  The hex digest is the key's identity in the store.

Two keys share an identity iff their serializations are byte-identical, so
``[{"a": 1, "b": 2}]`` and ``[{"b": 2, "a": 1}]`` are distinct entries for
exact lookups while still matching each other under
:func:`querycache.core.key_match.partial_match_key`.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping
from typing import Any

from querycache.models.query import QueryKey
from querycache.utils.errors import InvalidKeyError


def canonicalize_key(query_key: QueryKey) -> list[Any]:
    """Validate *query_key* and return its JSON-ready canonical form.

    Raises
    ------
    InvalidKeyError
        If the key is empty, is not a sequence, or contains a segment that
        has no canonical serialization.
    """
    if isinstance(query_key, (str, bytes)) or not isinstance(query_key, (list, tuple)):
        raise InvalidKeyError("Query key must be a list or tuple of segments", query_key)
    if len(query_key) == 0:
        raise InvalidKeyError("Keys must be provided", query_key)
    return [_canonical_segment(segment, query_key) for segment in query_key]


def _canonical_segment(segment: Any, query_key: QueryKey) -> Any:
    if segment is None or isinstance(segment, (str, bool, int)):
        return segment
    if isinstance(segment, float):
        if not math.isfinite(segment):
            raise InvalidKeyError(f"Non-finite number in key: {segment!r}", query_key)
        # 1.0 and 1 are the same number
        return int(segment) if segment.is_integer() else segment
    if isinstance(segment, Mapping):
        canonical: dict[str, Any] = {}
        for name, value in segment.items():
            if not isinstance(name, str):
                raise InvalidKeyError(f"Mapping field names must be strings, got {name!r}", query_key)
            canonical[name] = _canonical_segment(value, query_key)
        return canonical
    if isinstance(segment, (list, tuple)):
        return [_canonical_segment(item, query_key) for item in segment]
    raise InvalidKeyError(f"Unsupported key segment type: {type(segment).__name__}", query_key)


def serialize_key(query_key: QueryKey) -> str:
    """Return the canonical JSON text that the identity is computed from."""
    return json.dumps(
        canonicalize_key(query_key),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


class QueryKeyHash:
    """Identity of a composite key: the SHA-256 hex digest of its serialization.

    Instances are immutable value objects; build them with :meth:`create`.
    """

    __slots__ = ("_id",)

    def __init__(self, digest: str) -> None:
        self._id = digest

    @classmethod
    def create(cls, query_key: QueryKey) -> QueryKeyHash:
        """Hash *query_key*.  Raises :class:`InvalidKeyError` for bad keys."""
        payload = serialize_key(query_key).encode("utf-8")
        return cls(hashlib.sha256(payload).hexdigest())

    def __str__(self) -> str:
        return self._id

    def __repr__(self) -> str:
        return f"QueryKeyHash({self._id[:12]}...)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryKeyHash):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)
