"""
Timestamp-based TTL cache used by the data store and the LLM client.

Entries expire a fixed time after they were written. Writes sweep out expired
entries, and when ``max_entries`` is set the oldest entry is evicted once the
cache is full, so memory stays bounded. Every lookup updates
``cache.<name>.*`` telemetry counters so hit rates show up in the health
endpoints and tests.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Generic, TypeVar

from lifeos.observability.telemetry import counter, log_event

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cached value plus the wall-clock times it was stored and expires."""

    value: T
    stored_at: float
    expires_at: float


class TTLCache(Generic[T]):
    """Thread-safe TTL cache keyed by string."""

    def __init__(
        self,
        name: str,
        ttl_seconds: float = 3600.0,
        max_entries: int | None = None,
        clock=time.time,
    ):
        """
        Args:
            name: Cache name used in telemetry (e.g. "appdata", "llm_flow")
            ttl_seconds: Lifetime of each entry
            max_entries: Upper bound on stored entries (None for unbounded)
            clock: Time source, injectable for tests
        """
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                counter(f"cache.{self.name}.miss")
                return None

            if self._clock() > entry.expires_at:
                del self._store[key]
                counter(f"cache.{self.name}.expired")
                log_event("cache.expired", cache=self.name, key_hash=self._hash_key(key))
                return None

        counter(f"cache.{self.name}.hit")
        return entry.value

    def put(self, key: str, value: T) -> None:
        """
        Store value, restarting its TTL.

        Side Effects:
            - Writes to _store dict (in-memory cache)
            - Drops expired entries, then the oldest ones while over max_entries
            - Increments telemetry counter (cache.{name}.evicted) per eviction
            - Increments telemetry counter (cache.{name}.write)
        """
        now = self._clock()
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = CacheEntry(value=value, stored_at=now, expires_at=now + self.ttl_seconds)
            evicted = self._evict(now)
        counter(f"cache.{self.name}.write")
        if evicted:
            counter(f"cache.{self.name}.evicted", evicted)

    def age(self, key: str) -> float | None:
        """Seconds since the entry was stored (None when missing)."""
        entry = self._store.get(key)
        if entry is None:
            return None
        return self._clock() - entry.stored_at

    def invalidate(self, key: str) -> None:
        """
        Remove key from cache

        Side Effects:
            - Deletes entry from _store dict (in-memory cache)
            - Increments telemetry counter (cache.{name}.invalidate)
        """
        with self._lock:
            removed = self._store.pop(key, None)
        if removed is not None:
            counter(f"cache.{self.name}.invalidate")

    def clear(self) -> None:
        """
        Drop every entry.

        Side Effects:
            - Clears entire _store dict (in-memory cache)
            - Writes telemetry event with entry count
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
        log_event("cache.cleared", cache=self.name, count=count)

    def stats(self) -> dict[str, int]:
        now = self._clock()
        with self._lock:
            total = len(self._store)
            active = sum(1 for entry in self._store.values() if now <= entry.expires_at)

        return {
            "total_entries": total,
            "active_entries": active,
            "expired_entries": total - active,
        }

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and self._clock() <= entry.expires_at

    def _evict(self, now: float) -> int:
        """Remove expired entries and trim to max_entries. Caller holds the lock."""
        stale = [key for key, entry in self._store.items() if now > entry.expires_at]
        for key in stale:
            del self._store[key]

        evicted = len(stale)
        if self.max_entries is not None:
            # dicts keep insertion order and put() re-inserts, so the first key is the oldest write
            while len(self._store) > self.max_entries:
                del self._store[next(iter(self._store))]
                evicted += 1
        return evicted

    def _hash_key(self, key: str) -> str:
        """First 12 characters of the key, enough to correlate logs."""
        return key[:12] if len(key) > 12 else key
