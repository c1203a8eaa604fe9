"""
MovieDNA - In-memory TTL cache

Design patterns:
  - Cache Aside: callers check, compute on miss, then store
  - Dependency Injection: one instance per layer, handed to the component
    that owns it; the clock is injectable so tests control expiry

Entries are stored as a single ``(timestamp, value)`` tuple, so a reader
never sees half of an update. No single-flight: concurrent misses each
recompute and the last writer wins.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


def cache_key(*parts: Any) -> str:
    """Stable key for arbitrary JSON-able parts (dict order ignored)."""
    raw = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.md5(raw.encode()).hexdigest()


class TTLCache(Generic[V]):
    """Thread-safe dict with per-entry expiry. ``ttl=None`` never expires."""

    def __init__(self, ttl: Optional[float], *, clock: Clock = time.monotonic, name: str = "cache") -> None:
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._data: Dict[Hashable, Tuple[float, V]] = {}
        self._lock = threading.Lock()

    def _fresh(self, ts: float) -> bool:
        return self.ttl is None or self._clock() - ts < self.ttl

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            ts, val = entry
            if self._fresh(ts):
                return val
            del self._data[key]
            return None

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._data[key] = (self._clock(), value)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def purge_expired(self) -> int:
        """Drop stale entries. Returns count removed."""
        with self._lock:
            expired = [k for k, (ts, _) in self._data.items() if not self._fresh(ts)]
            for k in expired:
                del self._data[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
