"""Cache engine: key hashing, key matching, query entries and the store."""

from querycache.core.key_hash import QueryKeyHash, canonicalize_key, serialize_key
from querycache.core.key_match import match_query, partial_match_key
from querycache.core.query import Query, call_query_fn
from querycache.core.query_store import QueryStore

__all__ = [
    "Query",
    "QueryKeyHash",
    "QueryStore",
    "call_query_fn",
    "canonicalize_key",
    "match_query",
    "partial_match_key",
    "serialize_key",
]
