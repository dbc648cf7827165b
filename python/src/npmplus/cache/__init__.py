"""
npmplus Cache

Process-local TTL cache used by the orchestrator for cache-aside lookups.
"""

from .ttl_cache import CacheEntry, CacheMetrics, TTLCache, create_key

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "TTLCache",
    "create_key",
]
