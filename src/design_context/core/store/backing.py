"""SQLite implementation of the backing store."""

import asyncio
import json
import sqlite3
import threading
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from design_context.core.database.schema import migrate_schema
from design_context.errors import StoreIOError
from design_context.models.context import ContextKey


class SqliteBackingStore:
    """Durable context storage in a single SQLite file.

    Blocking sqlite calls run in a worker thread; one lock serializes access
    to the shared connection.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        migrate_schema(self._conn)
        logger.debug("Backing store ready at {}", self.db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _run(self, fn: Any, *args: Any) -> Any:
        with self._lock:
            try:
                return fn(*args)
            except (sqlite3.Error, TypeError, ValueError) as e:
                self._conn.rollback()
                msg = f"sqlite backing store failed: {e}"
                raise StoreIOError(msg) from e

    def _get(self, key: ContextKey) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT document FROM contexts WHERE file_key = ? AND node_id = ?",
            (key.file_key, key.node_id or ""),
        ).fetchone()
        return json.loads(row[0]) if row else None

    def _put(self, key: ContextKey, document: dict[str, Any]) -> None:
        meta = document.get("metadata") or {}
        self._conn.execute(
            """INSERT OR REPLACE INTO contexts
               (file_key, node_id, document, stored_at, updated_at, written_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                key.file_key,
                key.node_id or "",
                json.dumps(document, sort_keys=True),
                meta.get("stored"),
                meta.get("updated"),
                int(time.time() * 1000),
            ),
        )
        self._conn.commit()

    def _delete(self, key: ContextKey) -> None:
        self._conn.execute(
            "DELETE FROM contexts WHERE file_key = ? AND node_id = ?",
            (key.file_key, key.node_id or ""),
        )
        self._conn.commit()

    def _scan(self, file_keys: Sequence[str] | None) -> list[tuple[ContextKey, dict[str, Any]]]:
        sql = "SELECT file_key, node_id, document FROM contexts"
        params: list[str] = []
        if file_keys:
            placeholders = ",".join("?" * len(file_keys))
            sql += f" WHERE file_key IN ({placeholders})"
            params.extend(file_keys)
        sql += " ORDER BY file_key, node_id"
        rows = self._conn.execute(sql, params).fetchall()
        return [(ContextKey(r[0], r[1] or None), json.loads(r[2])) for r in rows]

    async def get(self, key: ContextKey) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._run, self._get, key)  # type: ignore[no-any-return]

    async def put(self, key: ContextKey, document: dict[str, Any]) -> None:
        await asyncio.to_thread(self._run, self._put, key, document)

    async def delete(self, key: ContextKey) -> None:
        await asyncio.to_thread(self._run, self._delete, key)

    async def scan(
        self, file_keys: Sequence[str] | None = None
    ) -> list[tuple[ContextKey, dict[str, Any]]]:
        return await asyncio.to_thread(self._run, self._scan, file_keys)  # type: ignore[no-any-return]
