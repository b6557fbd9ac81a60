from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
import threading
from typing import Any, Iterable, Mapping, Protocol

from profile_analyzer.core.config import settings
from profile_analyzer.core.errors import StorageQuotaError, StorageUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, keys: Iterable[str]) -> dict[str, Any]: ...

    async def set(self, mapping: Mapping[str, Any]) -> None: ...

    async def remove(self, keys: Iterable[str]) -> None: ...

    async def keys(self, prefix: str = "") -> list[str]: ...


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class _BudgetedStore:
    def __init__(self, *, max_item_bytes: int | None = None, max_total_bytes: int | None = None):
        self.max_item_bytes = int(max_item_bytes or settings.store_max_item_bytes)
        self.max_total_bytes = int(max_total_bytes or settings.store_max_total_bytes)

    def _encode_batch(self, mapping: Mapping[str, Any]) -> dict[str, str]:
        encoded: dict[str, str] = {}
        for key, value in mapping.items():
            payload = _encode(value)
            size = len(key.encode("utf-8")) + len(payload.encode("utf-8"))
            if size > self.max_item_bytes:
                raise StorageQuotaError(f"Item '{key}' is {size} bytes; limit is {self.max_item_bytes}.")
            encoded[key] = payload
        return encoded

    def _check_total(self, current_total: int, replaced: int, encoded: Mapping[str, str]) -> None:
        incoming = sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in encoded.items())
        projected = current_total - replaced + incoming
        if projected > self.max_total_bytes:
            raise StorageQuotaError(f"Store would hold {projected} bytes; limit is {self.max_total_bytes}.")


class MemoryKeyValueStore(_BudgetedStore):
    """In-process store with the same budgets and JSON semantics as the SQLite one."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self._data: dict[str, str] = {}
        self.available = True

    def _ensure_available(self) -> None:
        if not self.available:
            raise StorageUnavailableError("Memory store marked unavailable.")

    def _size(self, key: str) -> int:
        return len(key.encode("utf-8")) + len(self._data[key].encode("utf-8"))

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        self._ensure_available()
        result: dict[str, Any] = {}
        for key in keys:
            if key not in self._data:
                continue
            try:
                result[key] = json.loads(self._data[key])
            except json.JSONDecodeError:
                logger.warning("kv_value_undecodable key=%s", key)
                result[key] = self._data[key]
        return result

    async def set(self, mapping: Mapping[str, Any]) -> None:
        self._ensure_available()
        encoded = self._encode_batch(mapping)
        total = sum(self._size(key) for key in self._data)
        replaced = sum(self._size(key) for key in encoded if key in self._data)
        self._check_total(total, replaced, encoded)
        self._data.update(encoded)

    async def remove(self, keys: Iterable[str]) -> None:
        self._ensure_available()
        for key in keys:
            self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        self._ensure_available()
        return sorted(key for key in self._data if key.startswith(prefix))

    def put_raw(self, key: str, payload: str) -> None:
        """Write an undecoded payload, bypassing budgets."""
        self._data[key] = payload


class SqliteKeyValueStore(_BudgetedStore):
    """JSON values in a single SQLite table. Calls run in a worker thread."""

    def __init__(self, db_path: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.db_path = db_path or settings.cache_db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    size_bytes INTEGER NOT NULL
                );
                """
            )
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(f"Cannot open store at '{self.db_path}': {exc}") from exc
        self._conn = conn
        return conn

    def _run(self, fn, *args):
        with self._lock:
            conn = self._get_connection()
            try:
                return fn(conn, *args)
            except sqlite3.OperationalError as exc:
                raise StorageUnavailableError(f"Store operation failed: {exc}") from exc

    def _get_sync(self, conn: sqlite3.Connection, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        rows = conn.execute(
            f"SELECT key, value_json FROM kv_entries WHERE key IN ({placeholders})", keys
        ).fetchall()
        result: dict[str, Any] = {}
        for key, value_json in rows:
            try:
                result[key] = json.loads(value_json)
            except json.JSONDecodeError:
                # callers validate values; hand back the raw text
                logger.warning("kv_value_undecodable key=%s", key)
                result[key] = value_json
        return result

    def _set_sync(self, conn: sqlite3.Connection, mapping: Mapping[str, Any]) -> None:
        encoded = self._encode_batch(mapping)
        total = conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM kv_entries").fetchone()[0]
        replaced = 0
        if encoded:
            placeholders = ",".join("?" for _ in encoded)
            replaced = conn.execute(
                f"SELECT COALESCE(SUM(size_bytes), 0) FROM kv_entries WHERE key IN ({placeholders})",
                list(encoded),
            ).fetchone()[0]
        self._check_total(int(total), int(replaced), encoded)
        conn.execute("BEGIN")
        try:
            for key, payload in encoded.items():
                conn.execute(
                    """
                    INSERT INTO kv_entries (key, value_json, size_bytes) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json, size_bytes = excluded.size_bytes
                    """,
                    (key, payload, len(key.encode("utf-8")) + len(payload.encode("utf-8"))),
                )
            conn.execute("COMMIT")
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise

    def _remove_sync(self, conn: sqlite3.Connection, keys: list[str]) -> None:
        if keys:
            placeholders = ",".join("?" for _ in keys)
            conn.execute(f"DELETE FROM kv_entries WHERE key IN ({placeholders})", keys)

    def _keys_sync(self, conn: sqlite3.Connection, prefix: str) -> list[str]:
        rows = conn.execute(
            "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ).fetchall()
        return [row[0] for row in rows]

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return await asyncio.to_thread(self._run, self._get_sync, list(keys))

    async def set(self, mapping: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._run, self._set_sync, dict(mapping))

    async def remove(self, keys: Iterable[str]) -> None:
        await asyncio.to_thread(self._run, self._remove_sync, list(keys))

    async def keys(self, prefix: str = "") -> list[str]:
        return await asyncio.to_thread(self._run, self._keys_sync, prefix)

    def put_raw(self, key: str, payload: str) -> None:
        """Write an undecoded payload, bypassing budgets."""

        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO kv_entries (key, value_json, size_bytes) VALUES (?, ?, ?)",
                (key, payload, len(payload.encode("utf-8"))),
            )

        self._run(_write)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
