"""
Short-lived cache for read-mostly reference data (cities, services, content).

Entries are keyed by the query context label (e.g. ``cities:sydney``) so a
write to a reference table can drop everything under its prefix.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple

from app.core.logger import logger

_MISSING = object()


class TTLCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return default
        return value

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """Returns (hit, value) so cached falsy values still count as hits."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            return False, None
        return True, value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (self._clock() + ttl, value)

    def invalidate(self, prefix: str = "") -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.info(f"🧹 Reference cache cleared {len(keys)} entries (prefix '{prefix}')")
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)
