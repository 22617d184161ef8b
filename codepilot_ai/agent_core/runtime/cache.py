from __future__ import annotations

"""Bounded TTL cache for idempotent tool results.

Entries are kept in an ``OrderedDict`` in least-recently-used order. A hit
moves the entry to the most-recent position but keeps its original write
time, so an entry always expires ``ttl_ms`` after it was written. Expired
entries are removed lazily: on lookup, and by a sweep that runs at most once
per ``sweep_interval_ms``. Every removal is counted as an eviction.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..observability import CacheMetrics

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_MAX_CACHE_ENTRIES = 200
DEFAULT_CACHE_SWEEP_INTERVAL_MS = 60_000
MIN_CACHE_SWEEP_INTERVAL_MS = 1_000


@dataclass
class CacheEntry:
    result: str
    written_at_ms: float

    @property
    def size_bytes(self) -> int:
        return len(self.result.encode("utf-8"))


class ToolResultCache:
    """LRU-ordered result cache with write-time TTL and lazy sweeping."""

    def __init__(
        self,
        ttl_ms: float = DEFAULT_CACHE_TTL_MS,
        max_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
        sweep_interval_ms: float = DEFAULT_CACHE_SWEEP_INTERVAL_MS,
        metrics: Optional[CacheMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl_ms: Lifetime of an entry measured from its write.
            max_entries: Capacity; at least 1.
            sweep_interval_ms: Minimum time between sweeps; at least one second.
            metrics: Counters updated on hits, misses, writes and evictions.
            clock: Monotonic clock in seconds.
        """
        self.ttl_ms = ttl_ms
        self.max_entries = max(1, max_entries)
        self.sweep_interval_ms = max(MIN_CACHE_SWEEP_INTERVAL_MS, sweep_interval_ms)
        self.metrics = metrics if metrics is not None else CacheMetrics()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._last_sweep_ms: Optional[float] = None

    def now_ms(self) -> float:
        return self._clock() * 1000

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _expired(self, entry: CacheEntry, now_ms: float) -> bool:
        return now_ms - entry.written_at_ms >= self.ttl_ms

    def _evict(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self.metrics.record_eviction(entry.size_bytes)

    def _trim(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            self._evict(oldest)

    def maybe_sweep(self) -> bool:
        """Evict expired entries and trim to capacity if the sweep interval elapsed."""
        now = self.now_ms()
        if self._last_sweep_ms is not None and now - self._last_sweep_ms < self.sweep_interval_ms:
            return False
        self._last_sweep_ms = now
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for key in expired:
            self._evict(key)
        self._trim()
        if expired:
            logger.debug(f"Cache sweep evicted {len(expired)} expired entries")
        return True

    def get(self, key: str) -> Optional[str]:
        """Return a live entry (recording a hit) or ``None`` (recording a miss)."""
        entry = self._entries.get(key)
        if entry is not None:
            if not self._expired(entry, self.now_ms()):
                self.metrics.record_hit()
                self._entries.move_to_end(key)
                return entry.result
            self._evict(key)
        self.metrics.record_miss()
        return None

    def put(self, key: str, result: str) -> None:
        self._entries[key] = CacheEntry(result=result, written_at_ms=self.now_ms())
        self._entries.move_to_end(key)
        self.metrics.record_write(len(result.encode("utf-8")))
        self._trim()

    def clear(self) -> None:
        for key in list(self._entries):
            self._evict(key)

    def stats(self) -> Dict[str, float]:
        snapshot = self.metrics.snapshot()
        return {
            "size": sum(e.size_bytes for e in self._entries.values()),
            "entries": len(self._entries),
            "hits": snapshot["hits"],
            "misses": snapshot["misses"],
            "hit_rate": snapshot["hit_rate"],
            "writes": snapshot["writes"],
            "evictions": snapshot["evictions"],
            "max_entries": self.max_entries,
            "ttl_ms": self.ttl_ms,
            "bytes_stored": snapshot["bytes_stored"],
        }
