"""
In-memory TTL cache for expensive aggregate computations

One instance is created by the server and handed to the handlers that need
it. Expiry is checked lazily on lookup; cleanup_expired() sweeps the rest.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from lightdash_mcp.logging import get_logger

logger = get_logger('CACHE')

DEFAULT_TTL_MS = 5 * 60 * 1000


def _now_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class ResultCache:
    """
    Key/value store whose entries expire ``ttl_ms`` after being set.

    Args:
        clock: Millisecond clock, monotonic by default
    """

    def __init__(self, clock: Callable[[], float] = _now_ms):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Stored value for ``key``, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self._clock()):
            logger.debug(f"hit | key:{key}")
            return entry.data

        del self._entries[key]
        logger.debug(f"expired | key:{key}")
        return None

    def set(self, key: str, value: Any, ttl_ms: float = DEFAULT_TTL_MS) -> None:
        self._entries[key] = CacheEntry(data=value, timestamp=self._clock(), ttl=ttl_ms)

    def stats(self) -> Dict[str, Any]:
        """Current size and the age and ttl of every entry, in milliseconds."""
        now = self._clock()
        return {
            "size": len(self._entries),
            "entries": [
                {"key": key, "age": now - entry.timestamp, "ttl": entry.ttl}
                for key, entry in self._entries.items()
            ],
        }

    def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"removed expired entries | count:{len(expired)}")
        return len(expired)
