"""
SQLite key-value storage for tradesxbt.

Chat threads and token history are stored as JSON documents under fixed
keys, so the schema is a single table.
"""
import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional, Union

from ..constants import STORAGE_DB


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_info (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS storage (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at REAL
);
"""


class KeyValueStore:
    """
    JSON documents in SQLite, one connection per thread.

    Pass ":memory:" as the path for a throwaway store; in that case all
    threads share one connection so they see the same data.

    Args:
        db_path: Database file (defaults to ~/.tradesxbt/storage.db)
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None) -> None:
        self._in_memory = str(db_path) == MEMORY
        self._db_path = MEMORY if self._in_memory else Path(db_path or STORAGE_DB)
        self._local = threading.local()
        self._shared: Optional[sqlite3.Connection] = None
        self._ensure_directory()
        self._initialize_schema()

    @property
    def path(self) -> Union[Path, str]:
        return self._db_path

    def _ensure_directory(self) -> None:
        if not self._in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if not self._in_memory:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Get the connection for the current thread."""
        if self._in_memory:
            if self._shared is None:
                self._shared = self._connect()
            return self._shared
        if getattr(self._local, "connection", None) is None:
            self._local.connection = self._connect()
        return self._local.connection

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for a committed transaction."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _initialize_schema(self) -> None:
        with self.transaction() as conn:
            conn.executescript(SCHEMA)
            row = conn.execute("SELECT value FROM schema_info WHERE key = 'version'").fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_info (key, value) VALUES (?, ?)",
                    ("version", str(SCHEMA_VERSION))
                )

    def get(self, key: str) -> Optional[str]:
        """Raw stored text for a key, or None."""
        row = self._get_connection().execute(
            "SELECT value FROM storage WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO storage (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, value, time.time())
            )

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Load a JSON document.

        Args:
            key: Storage key
            default: Returned when the key is absent or holds invalid JSON

        Returns:
            Decoded document or default
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt JSON stored under {key!r}")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def delete(self, key: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM storage WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        rows = self._get_connection().execute("SELECT key FROM storage ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close this thread's connection (or the shared in-memory one)."""
        if self._in_memory:
            if self._shared is not None:
                self._shared.close()
                self._shared = None
            return
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None
