"""
cache.py — In-Process TTL Cache

Purpose:
- Hold small, process-lifetime lookups (the stock universe list) without a
  module-level global.
- An instance is constructed once at application startup, stored on
  `app.state`, and handed to handlers through a dependency.
- Expiry is judged against an injected clock so tests can advance time.

This module does NOT:
- Connect to the database (provider responses are cached in `api_cache`,
  see finhub/services/response_cache.py).
- Share state across processes; each worker keeps its own copy and a restart
  empties it.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple

Clock = Callable[[], float]


def make_key(namespace: str, identifier: Any) -> str:
    """
    Utility to construct consistent cache keys.

    Example:
        make_key("universe", "stocks") → "universe:stocks"
    """
    return f"{namespace}:{identifier}"


class TTLCache:
    """Key → value store whose entries expire `ttl_seconds` after being set."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> float:
        """Store a value and return the timestamp it was stored at."""
        stored_at = self._clock()
        self._store[key] = (value, stored_at)
        return stored_at

    def timestamp(self, key: str) -> Optional[float]:
        """When the live entry for `key` was stored, or None."""
        if self.get(key) is None:
            return None
        return self._store[key][1]

    def clear(self, namespace: Optional[str] = None) -> None:
        """
        Clears cache entirely, or optionally clears only a specific namespace.

        Example:
            cache.clear("universe") clears keys starting with "universe:"
        """
        if namespace is None:
            self._store.clear()
        else:
            prefix = f"{namespace}:"
            for key in list(self._store.keys()):
                if key.startswith(prefix):
                    del self._store[key]
