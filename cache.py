"""Expiring key-value cache for external catalog lookups."""
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

DEFAULT_TTL = 3600  # 1 hour in seconds
DEFAULT_MAX_ENTRIES = 256


class ExpiringCache:
    """In-memory cache whose entries expire ``ttl`` seconds after they were written.

    The cache is bounded: once ``max_entries`` is exceeded the oldest
    writes are evicted first. Expired entries stay readable through
    :meth:`get_stale` until they are overwritten or removed by
    :meth:`evict_expired`.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def _is_fresh(self, stored_at: float) -> bool:
        return self.clock() - stored_at < self.ttl

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or ``None`` when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        return value if self._is_fresh(stored_at) else None

    def get_stale(self, key: Hashable) -> Optional[Any]:
        """Return the cached value regardless of its age."""
        entry = self._entries.get(key)
        return entry[1] if entry is not None else None

    def put(self, key: Hashable, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self.clock(), value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def evict_expired(self) -> int:
        expired = [key for key, (stored_at, _) in self._entries.items() if not self._is_fresh(stored_at)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
