"""
Persistence layer for Context Forge MCP.

Exports:
    - TaskStore: Async sqlite-backed store for project tasks (explicit open/close lifecycle).
    - QueryCache: TTL cache with prefix invalidation used by the store.
    - invalidate_cache, clear_cache: Cache maintenance helpers.
"""

from ._cache import QueryCache, clear_cache, invalidate_cache
from ._store import TASKS_CACHE_PREFIX, TaskStore

__all__ = [
    "TaskStore",
    "QueryCache",
    "invalidate_cache",
    "clear_cache",
    "TASKS_CACHE_PREFIX",
]
