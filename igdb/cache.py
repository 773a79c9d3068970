"""In-process response cache for IGDB lookups."""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)

GAME_CACHE_TTL_SECONDS = 10 * 60
SEARCH_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 1024


class _Miss:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()
"""Sentinel returned by :meth:`ResponseCache.get` when no valid entry exists."""


class ResponseCache:
    """Time-bounded memoization with LRU eviction.

    Entries are ``(data, timestamp)`` pairs and are valid while
    ``now - timestamp < ttl``. Stale entries are dropped lazily on read.
    Once ``max_entries`` is reached the least recently used entry is evicted.
    """

    def __init__(
        self,
        ttl: float,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] | None = None,
        name: str = "cache",
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = float(ttl)
        self.max_entries = max(1, int(max_entries))
        self.name = name
        self._clock = clock or time.time
        self._lock = Lock()
        self._entries: OrderedDict[Hashable, tuple[Any, float]] = OrderedDict()

    def get(self, key: Hashable) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            data, timestamp = entry
            if self._clock() - timestamp >= self.ttl:
                del self._entries[key]
                return MISS
            self._entries.move_to_end(key)
            return data

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted %r from %s", evicted, self.name)

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop ``key`` or, when ``None``, every entry."""

        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not MISS  # type: ignore[arg-type]


def game_key(game_id: int) -> tuple[str, int]:
    return ("game", int(game_id))


def similar_key(game_ids: tuple[int, ...]) -> tuple[Any, ...]:
    return ("similar", *game_ids)


def search_key(query: str, limit: int) -> tuple[str, str, int]:
    return ("search", query.lower(), int(limit))


def popular_key(limit: int) -> tuple[str, int]:
    return ("popular", int(limit))


__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "GAME_CACHE_TTL_SECONDS",
    "MISS",
    "ResponseCache",
    "SEARCH_CACHE_TTL_SECONDS",
    "game_key",
    "popular_key",
    "search_key",
    "similar_key",
]
