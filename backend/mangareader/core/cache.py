from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional


class ViewCache:
    """Bounded LRU map of visitor keys to the time their view was last counted.

    Entries older than ``ttl_seconds`` no longer suppress a view; when more
    than ``max_entries`` keys are held the least recently used are dropped.
    """

    def __init__(
        self,
        max_entries: int = 10_000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self._get_fresh(key) is not None

    def _get_fresh(self, key: str) -> Optional[float]:
        with self._lock:
            seen = self._entries.get(key)
            if seen is None:
                return None
            if self._clock() - seen > self._ttl:
                del self._entries[key]
                return None
            return seen

    def should_count(self, key: str) -> bool:
        """Record a view for ``key``; True when it was not seen within the TTL."""
        now = self._clock()
        with self._lock:
            seen = self._entries.get(key)
            if seen is not None and now - seen <= self._ttl:
                self._entries.move_to_end(key)
                return False
            self._entries[key] = now
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
