"""
ResponseCache - Bounded in-memory cache with TTL expiry and LRU eviction.

Features:
- TTL (Time To Live) checked on every read, expired entries removed eagerly
- LRU eviction of exactly one entry when inserting a new key at capacity
- Periodic background sweep reclaiming entries that are never read again
- Thread-safe: a short lock guards each mutation, including the sweep
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

DEFAULT_TTL_MS = 30_000
DEFAULT_MAX_SIZE = 1000
SWEEP_INTERVAL_SECONDS = 60


@dataclass
class CacheEntry:
    """A single cache entry with metadata."""

    key: str
    value: Any
    stored_at: float
    last_accessed: float

    def is_expired(self, now: float, ttl: float) -> bool:
        """Check if entry is past its TTL."""
        return now - self.stored_at > ttl


@dataclass
class CacheResult:
    """Result from cache lookup."""

    data: Any
    age: float  # seconds since the entry was stored


class ResponseCache:
    """
    Response cache keyed by canonical request signature.

    Usage:
        cache = ResponseCache(ttl_ms=30_000, max_size=1000)

        result = cache.get("GET:/issues:{}")
        if result:
            return result.data

        data = await fetch_data()
        cache.set("GET:/issues:{}", data)

        cache.dispose()  # stops the background sweep
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive; skip the cache to disable it")
        if max_size <= 0:
            raise ValueError("max_size must be positive")

        # Ordered by last access: the first entry is always the LRU candidate
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl_ms = ttl_ms
        self._ttl = ttl_ms / 1000
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = threading.Lock()
        self._stats = CacheStats()

        self._scheduler: BackgroundScheduler | None = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.cleanup_expired,
            IntervalTrigger(seconds=sweep_interval),
            id="response-cache-sweep",
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> CacheResult | None:
        """
        Get value from cache.

        Returns CacheResult if found and fresh, None otherwise. A hit marks
        the entry as most recently used.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:80]}")
                return None

            if entry.is_expired(now, self._ttl):
                del self._entries[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {key[:80]}")
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._stats.hits += 1
            self._log(f"HIT: {key[:80]}")

            return CacheResult(data=entry.value, age=now - entry.stored_at)

    def set(self, key: str, value: Any) -> None:
        """Insert or replace a value, evicting the LRU entry if at capacity."""
        now = self._clock()
        with self._lock:
            if len(self._entries) >= self._max_size and key not in self._entries:
                self._evict_lru()

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                stored_at=now,
                last_accessed=now,
            )
            self._entries.move_to_end(key)
            self._log(f"SET: {key[:80]} (TTL: {self._ttl}s)")

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._log(f"CLEAR: {count} entries removed")

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        with self._lock:
            expired_keys = [
                k for k, v in self._entries.items() if v.is_expired(now, self._ttl)
            ]
            for key in expired_keys:
                del self._entries[key]

        if expired_keys:
            self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    def _evict_lru(self) -> None:
        """Evict the least recently used entry. Caller holds the lock."""
        if not self._entries:
            return

        oldest_key, _ = self._entries.popitem(last=False)
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:80]}")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def disposed(self) -> bool:
        return self._scheduler is None

    def dispose(self) -> None:
        """Stop the background sweep and drop all entries. Safe to call twice."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.debug("Response cache sweep stopped")
        self.clear()

    def get_stats(self) -> "CacheStats":
        """Snapshot of the cache statistics; later operations do not change it."""
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                size=len(self._entries),
                ttl_ms=self._ttl_ms,
                max_size=self._max_size,
            )

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ResponseCache] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    ttl_ms: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "size": self.size,
            "ttl": self.ttl_ms,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
