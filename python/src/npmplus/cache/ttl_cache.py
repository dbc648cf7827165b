"""
TTL Cache

In-memory key/value store with per-entry expiry and hit/miss/eviction metrics.

TTL rules:
- ``ttl`` of None or ``<= 0`` means "use the default TTL"
- only ``never_expire=True`` stores an entry without expiry
- an expired entry is a miss on the next ``get`` and is purged at that point
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from ..config.logging_config import pkg_logger

KEY_SEPARATOR = ":"


@dataclass
class CacheEntry:
    """A cached value and its absolute expiry (None = never expires)."""
    key: str
    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class CacheMetrics:
    """Cache counters."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    hit_rate: float = 0.0
    key_count: int = 0


def create_key(*parts: Any) -> str:
    """
    Create a cache key from multiple parts.

    Each part is percent-encoded so the separator can never appear inside a
    part, which keeps distinct part tuples mapped to distinct keys.
    """
    return KEY_SEPARATOR.join(quote(str(part), safe="._-") for part in parts)


class TTLCache:
    """TTL key/value cache with metrics."""

    def __init__(
        self,
        default_ttl: float = 600,
        max_keys: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if max_keys <= 0:
            raise ValueError("max_keys must be positive")

        self.default_ttl = default_ttl
        self.max_keys = max_keys
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default`` on a miss."""
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            return default

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None, *, never_expire: bool = False) -> None:
        """Store ``value`` under ``key``; last write wins."""
        if never_expire:
            expires_at = None
        else:
            effective_ttl = ttl if ttl is not None and ttl > 0 else self.default_ttl
            expires_at = self._clock() + effective_ttl

        if key not in self._entries and len(self._entries) >= self.max_keys:
            self._make_room()

        self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        self._sets += 1

    def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True if an entry was removed."""
        if self._entries.pop(key, None) is None:
            return False
        self._deletes += 1
        return True

    def has(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> None:
        """Remove every entry."""
        self._deletes += len(self._entries)
        self._entries.clear()

    def keys(self) -> list[str]:
        """Live keys (for debugging)."""
        now = self._clock()
        return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def get_ttl(self, key: str) -> float | None:
        """Remaining seconds for ``key``; None if absent or non-expiring."""
        entry = self._entries.get(key)
        now = self._clock()
        if entry is None or entry.expires_at is None or entry.is_expired(now):
            return None
        return entry.expires_at - now

    def set_ttl(self, key: str, ttl: float) -> bool:
        """Reset the TTL of a live entry."""
        if not self.has(key):
            return False
        effective_ttl = ttl if ttl > 0 else self.default_ttl
        self._entries[key].expires_at = self._clock() + effective_ttl
        return True

    def purge_expired(self) -> int:
        """Physically remove expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        return len(expired)

    def metrics(self) -> CacheMetrics:
        """Snapshot of the cache counters."""
        total_requests = self._hits + self._misses
        return CacheMetrics(
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            deletes=self._deletes,
            evictions=self._evictions,
            hit_rate=self._hits / total_requests if total_requests > 0 else 0.0,
            key_count=len(self._entries)
        )

    def _make_room(self) -> None:
        """Free one slot: purge expired entries first, then drop the soonest to expire."""
        if self.purge_expired() > 0:
            return

        # Non-expiring entries go last
        victim = min(
            self._entries.values(),
            key=lambda e: e.expires_at if e.expires_at is not None else float("inf")
        )
        del self._entries[victim.key]
        self._evictions += 1
        pkg_logger.debug(f"Cache full, evicted {victim.key}")
