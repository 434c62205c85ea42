"""Public interface definitions.

IQueryCache
    Query-result cache contract, implemented by
    :class:`querycache.cache.QueryCache`.
"""

from querycache.interfaces.query_cache import IQueryCache

__all__ = ["IQueryCache"]
