"""
SQLite-backed task store.

The store owns one aiosqlite connection for the lifetime of the process. It is constructed and
opened once at startup, passed explicitly to the components that need it (the task tools), and
closed from the server's shutdown hook.
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from context_forge_mcp._exceptions import TaskStoreError

from ._cache import QueryCache, invalidate_cache

_LOGGER = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
TASKS_CACHE_PREFIX = "tasks:"

_TASK_COLUMNS = (
    'id, project_id, title, description, status, "order", created_at, updated_at'
)


def _row_to_task(row: aiosqlite.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "projectId": row["project_id"],
        "title": row["title"],
        "description": row["description"],
        "status": row["status"],
        "order": row["order"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


class TaskStore:
    """
    Async access to the ``tasks`` table.

    Usage:
        >>> async with TaskStore("context_forge.db") as store:
        ...     tasks = await store.get_tasks_by_project_id("project-1")

    Reads of a project's tasks are cached in a :class:`QueryCache` under ``tasks:<project_id>``
    and invalidated by writes to that project.
    """

    def __init__(self, path: str | Path, *, cache: QueryCache | None = None) -> None:
        self._path = str(path)
        self._cache = cache if cache is not None else QueryCache()
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def cache(self) -> QueryCache:
        return self._cache

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        """Open the connection and create the schema if needed. Idempotent."""
        if self._conn is not None:
            return
        _LOGGER.info(f"[{self.__class__.__name__}] opening database '{self._path}'")
        try:
            conn = await aiosqlite.connect(self._path)
            conn.row_factory = aiosqlite.Row
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TASKS_TABLE} (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL,
                    "order" INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            await conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{TASKS_TABLE}_project_id ON {TASKS_TABLE} (project_id)"
            )
            await conn.commit()
        except sqlite3.Error as e:
            raise TaskStoreError(f"Failed to open database '{self._path}': {e}") from e
        self._conn = conn

    async def close(self) -> None:
        """Close the connection and drop cached reads. Safe to call more than once."""
        conn, self._conn = self._conn, None
        self._cache.clear()
        if conn is None:
            return
        _LOGGER.info(f"[{self.__class__.__name__}] closing database '{self._path}'")
        await conn.close()

    async def __aenter__(self) -> "TaskStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise TaskStoreError(
                f"{self.__class__.__name__} is not open. Call 'await open()' first."
            )
        return self._conn

    async def get_tasks_by_project_id(self, project_id: str) -> list[dict[str, Any]]:
        """
        Return every task of a project, ordered by ``order`` ascending.

        Raises:
            TaskStoreError: If the store is not open or the query fails.
        """
        cache_key = f"{TASKS_CACHE_PREFIX}{project_id}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return list(cached)

        conn = self._connection()
        try:
            async with conn.execute(
                f'SELECT {_TASK_COLUMNS} FROM {TASKS_TABLE} WHERE project_id = ? ORDER BY "order" ASC',
                (project_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise TaskStoreError(
                f"Failed to load tasks for project '{project_id}': {e}"
            ) from e

        tasks = [_row_to_task(row) for row in rows]
        self._cache.set(cache_key, tasks)
        return list(tasks)

    async def create_task(
        self,
        project_id: str,
        title: str,
        *,
        description: str | None = None,
        status: str = "todo",
        order: int | None = None,
    ) -> dict[str, Any]:
        """
        Insert a task and invalidate the project's cached task list.

        When ``order`` is omitted the task is appended after the project's last task.

        Raises:
            TaskStoreError: If the store is not open or the insert fails.
        """
        conn = self._connection()
        async with self._write_lock:
            try:
                if order is None:
                    async with conn.execute(
                        f'SELECT COALESCE(MAX("order"), -1) + 1 FROM {TASKS_TABLE} WHERE project_id = ?',
                        (project_id,),
                    ) as cursor:
                        row = await cursor.fetchone()
                    order = int(row[0]) if row is not None else 0

                now = datetime.now(timezone.utc).isoformat()
                task_id = uuid.uuid4().hex
                await conn.execute(
                    f"INSERT INTO {TASKS_TABLE} ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (task_id, project_id, title, description, status, order, now, now),
                )
                await conn.commit()
            except sqlite3.Error as e:
                raise TaskStoreError(
                    f"Failed to create task for project '{project_id}': {e}"
                ) from e

        invalidate_cache(self._cache, TASKS_CACHE_PREFIX, project_id)
        return {
            "id": task_id,
            "projectId": project_id,
            "title": title,
            "description": description,
            "status": status,
            "order": order,
            "createdAt": now,
            "updatedAt": now,
        }
