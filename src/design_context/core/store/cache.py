"""Local TTL cache in front of the backing store."""

import copy
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """A cached document and the monotonic time it stops being valid."""

    document: dict[str, Any]
    expires_at: float


class TTLCache:
    """Thread-safe map of key -> document with per-entry expiry.

    Documents are deep-copied on the way in and out, so callers never hold a
    reference into the shared map. Expired entries are dropped on lookup, and
    set() sweeps the whole map at most once per TTL period.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + ttl

    def get(self, key: Hashable) -> dict[str, Any] | None:
        """Return a copy of the cached document, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return copy.deepcopy(entry.document)

    def set(self, key: Hashable, document: dict[str, Any]) -> None:
        """Cache a copy of document with a fresh TTL."""
        now = self._clock()
        entry = CacheEntry(document=copy.deepcopy(document), expires_at=now + self.ttl)
        with self._lock:
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self.ttl
            self._entries[key] = entry

    def evict(self, key: Hashable) -> bool:
        """Drop key; return whether it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def purge_expired(self) -> int:
        """Drop every expired entry; return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def stats(self) -> dict[str, Any]:
        self.purge_expired()
        with self._lock:
            keys = sorted(self._entries, key=str)
        return {"size": len(keys), "keys": keys, "ttl": self.ttl}
