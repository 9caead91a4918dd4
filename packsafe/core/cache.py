"""InMemoryCache — TTL + LRU key/value cache with item and byte ceilings.

The cache is an explicitly constructed service: the application lifespan
owns one instance and calls :meth:`InMemoryCache.start` /
:meth:`InMemoryCache.stop` around it. All mutation happens on the event
loop thread, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import json
import os
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger("packsafe.cache")

DEFAULT_MAX_ITEMS = 10_000
DEFAULT_MAX_MEMORY_MB = 100
DEFAULT_CLEANUP_INTERVAL = 300.0  # seconds


@dataclass
class _Entry:
    value: Any
    expires_at: float | None
    size: int
    access_count: int = 0
    last_accessed: float = 0.0


@dataclass
class CacheStats:
    """Snapshot of cache counters."""

    total_items: int
    total_size: int
    hit_count: int
    miss_count: int
    eviction_count: int
    hit_rate: float
    formatted_size: str
    max_items: int
    max_memory_mb: float


def _sizeof(value: Any) -> int:
    """Approximate footprint: UTF-8 length of the JSON encoding."""
    return len(json.dumps(value, default=str).encode("utf-8"))


def format_bytes(size: int) -> str:
    """Human-readable byte count (``512 B``, ``1.50 KB``, ``2.00 MB``)."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


class InMemoryCache:
    """Process-local cache with per-entry TTL and least-recently-used eviction."""

    def __init__(
        self,
        *,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_memory_mb: float = DEFAULT_MAX_MEMORY_MB,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_items < 1:
            raise ValueError("max_items must be >= 1")
        self.max_items = max_items
        self.max_memory_mb = max_memory_mb
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._max_bytes = int(max_memory_mb * 1024 * 1024)
        # Insertion order == recency order; move_to_end() on every access.
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_env(cls) -> InMemoryCache:
        """Build a cache from ``PACKSAFE_CACHE_*`` environment variables."""
        return cls(
            max_items=int(os.environ.get("PACKSAFE_CACHE_MAX_ITEMS", DEFAULT_MAX_ITEMS)),
            max_memory_mb=float(
                os.environ.get("PACKSAFE_CACHE_MAX_MEMORY_MB", DEFAULT_MAX_MEMORY_MB)
            ),
            cleanup_interval=float(
                os.environ.get("PACKSAFE_CACHE_CLEANUP_INTERVAL", DEFAULT_CLEANUP_INTERVAL)
            ),
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the periodic cleanup task."""
        if self._task is None:
            self._task = asyncio.create_task(self._cleanup_loop(), name="cache-cleanup")
            log.info("cache.started", max_items=self.max_items, max_memory_mb=self.max_memory_mb)

    async def stop(self) -> None:
        """Cancel the cleanup task and drop every entry."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        self._entries.clear()
        self._total_size = 0
        log.info("cache.stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.cleanup()

    # ── public ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss / expiry."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        now = self._clock()
        if self._is_expired(entry, now):
            self._remove(key)
            self._misses += 1
            return None
        entry.access_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value* under *key*; ``ttl_seconds=None`` means no expiry."""
        now = self._clock()
        if key in self._entries:
            self._remove(key)
        entry = _Entry(
            value=value,
            expires_at=now + ttl_seconds if ttl_seconds is not None else None,
            size=_sizeof(value),
            last_accessed=now,
        )
        self._entries[key] = entry
        self._total_size += entry.size
        if self._over_limits():
            self._evict_lru()

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True only if the key was present."""
        if key not in self._entries:
            return False
        self._remove(key)
        return True

    def exists(self, key: str) -> bool:
        """True if *key* holds an unexpired value. Does not touch recency or stats."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._is_expired(entry, self._clock()):
            self._remove(key)
            return False
        return True

    def flush_all(self) -> None:
        """Drop every entry and reset all counters."""
        self._entries.clear()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        log.info("cache.flushed")

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        hit_rate = round(self._hits / lookups * 100, 2) if lookups else 0.0
        return CacheStats(
            total_items=len(self._entries),
            total_size=self._total_size,
            hit_count=self._hits,
            miss_count=self._misses,
            eviction_count=self._evictions,
            hit_rate=hit_rate,
            formatted_size=format_bytes(self._total_size),
            max_items=self.max_items,
            max_memory_mb=self.max_memory_mb,
        )

    def cleanup(self) -> int:
        """Purge expired entries, then enforce ceilings. Returns entries removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            self._remove(key)
        evicted = self._evict_lru() if self._over_limits() else 0
        if expired or evicted:
            log.debug("cache.cleanup", expired=len(expired), evicted=evicted)
        return len(expired) + evicted

    def __len__(self) -> int:
        return len(self._entries)

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _is_expired(entry: _Entry, now: float) -> bool:
        return entry.expires_at is not None and now >= entry.expires_at

    def _over_limits(self) -> bool:
        return len(self._entries) > self.max_items or self._total_size > self._max_bytes

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._total_size -= entry.size

    def _evict_lru(self) -> int:
        """Evict least-recently-used entries until both ceilings hold."""
        evicted = 0
        while self._entries and self._over_limits():
            key = next(iter(self._entries))
            self._remove(key)
            evicted += 1
        self._evictions += evicted
        if evicted:
            log.info("cache.evicted", count=evicted, total_items=len(self._entries))
        return evicted
