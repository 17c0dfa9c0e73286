import threading
import time
from typing import Any, Callable, Hashable


class OptionsCache:
    """
    Small TTL cache for expensive lookups such as dashboard filter options.
    The clock is injectable so expiry can be driven from tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Any | None:
        now = self._clock()
        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                return None
            expires_at, value = cached
            if expires_at > now:
                return value
            self._entries.pop(key, None)
            return None

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def get_or_compute(self, key: Hashable, ttl: float, compute: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        # computed outside the lock; concurrent misses may both recompute
        value = compute()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
