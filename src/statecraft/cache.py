"""Inference result cache.

An explicit LRU with an optional time-to-live. Callers own the cache
and pass it where results should be reused; nothing here is
process-global.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_MISSING = object()


class InferenceCache:
    """OrderedDict-based LRU keyed by caller-chosen strings.

    Args:
        maxsize: Entries retained before the least recently used is evicted.
        ttl: Seconds an entry stays fresh; None means no expiry.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        maxsize: int = 128,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        if ttl is not None and ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._maxsize = maxsize
        self._ttl = ttl
        self._clock = clock

    def _expired(self, stored_at: float) -> bool:
        return self._ttl is not None and self._clock() - stored_at >= self._ttl

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for ``key``, or ``default`` on miss/expiry."""
        item = self._entries.get(key, _MISSING)
        if item is _MISSING:
            logger.debug("Cache miss: %s", key)
            return default
        stored_at, value = item
        if self._expired(stored_at):
            logger.debug("Cache expired: %s", key)
            del self._entries[key]
            return default
        self._entries.move_to_end(key)
        logger.debug("Cache hit: %s", key)
        return value

    def put(self, key: str, value: Any) -> None:
        """Store ``value``, evicting the least recently used entry if full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self._maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache evict: %s", evicted)

    def invalidate(self, key: str) -> bool:
        """Drop ``key``; True if it was present."""
        return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        item = self._entries.get(key, _MISSING)  # type: ignore[arg-type]
        return item is not _MISSING and not self._expired(item[0])
