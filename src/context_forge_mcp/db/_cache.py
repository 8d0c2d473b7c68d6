"""In-memory query cache with TTL expiry and prefix invalidation."""

import logging
import time
from collections.abc import Callable
from typing import Any

_LOGGER = logging.getLogger(__name__)


class QueryCache:
    """
    A small TTL cache keyed by strings such as ``"tasks:<project_id>"``.

    Keys are built as ``<type><key>`` so whole families can be dropped with
    :meth:`delete_by_prefix`. The cache is only touched from the event loop thread and needs no
    locking. A ``ttl_seconds`` of 0 disables caching. Expired entries are dropped on read and
    on every write.
    """

    def __init__(
        self, ttl_seconds: float = 60, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        if self._ttl_seconds <= 0:
            return
        now = self._clock()
        self._prune(now)
        # Re-insert so the map stays ordered by expiry
        self._entries.pop(key, None)
        self._entries[key] = (now + self._ttl_seconds, value)

    def _prune(self, now: float) -> None:
        """Drop expired entries from the front of the expiry-ordered map."""
        while self._entries:
            key, (expires_at, _) = next(iter(self._entries.items()))
            if now < expires_at:
                break
            del self._entries[key]

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with *prefix* and return how many were removed."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def invalidate_cache(cache: QueryCache, type_prefix: str, key: str | None = None) -> None:
    """
    Invalidate one cache entry, or every entry of a type.

    Args:
        cache (QueryCache): The cache to invalidate.
        type_prefix (str): The key family, e.g. ``"tasks:"``.
        key (str | None): The specific key within the family. When omitted the whole family
            is dropped.
    """
    if key:
        cache.delete(f"{type_prefix}{key}")
    else:
        removed = cache.delete_by_prefix(type_prefix)
        _LOGGER.debug(f"[cache:invalidate_cache] Dropped {removed} '{type_prefix}' entries")


def clear_cache(cache: QueryCache) -> None:
    """Drop every cached entry."""
    cache.clear()
