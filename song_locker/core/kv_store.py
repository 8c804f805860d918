"""
Thread-safe SQLite key-value store for song-locker.

The catalog is persisted as three independent serialized records (songs,
favorites, playlists). This module only knows about opaque string keys and
string values; serialization lives in song_locker.library.catalog_store.

Schema:
    schema_version:     Single row holding the schema version
    kv:                 One row per key (key TEXT PRIMARY KEY, value TEXT, updated_at)

Guarantees:
    - Each set() is committed on its own, so one key at a time is
      crash-atomic (SQLite journaling).
    - There is NO multi-key transaction. A crash between two set() calls
      can leave keys mutually inconsistent; the library repairs that on
      the next load.

Usage:
    store = KeyValueStore(library_dir / "library.db")
    store.set("@saved_songs", '[{"id": "1", ...}]')
    raw = store.get("@saved_songs")   # None if the key was never written
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from song_locker.core.exceptions import StoreError


STORE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


class KeyValueStore:
    """
    Thread-safe SQLite key-value store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise StoreError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_store()
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to initialize store: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent connection as a context manager.

        The connection is created once and reused for all operations;
        leaving the context does not close it.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_store(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (STORE_VERSION,))
            elif row[0] != STORE_VERSION:
                raise StoreError(
                    f"Store version mismatch: expected {STORE_VERSION}, got {row[0]}",
                    details={"expected": STORE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def get(self, key: str) -> str | None:
        """
        Read the value stored under key.

        Returns:
            The stored string, or None if the key has never been written.

        Raises:
            StoreError: If the read fails.
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
                    row = cursor.fetchone()
                    return row[0] if row else None
            except sqlite3.Error as e:
                raise StoreError(
                    f"Failed to read key '{key}': {e}",
                    details={"key": key, "original_error": str(e)}
                ) from e

    def set(self, key: str, value: str) -> None:
        """
        Write value under key, replacing any previous value.

        Raises:
            StoreError: If the write fails. The pending write is rolled back
                        and the previous value is kept.
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    try:
                        conn.execute("""
                            INSERT INTO kv (key, value, updated_at)
                            VALUES (?, ?, ?)
                            ON CONFLICT(key) DO UPDATE SET
                                value = excluded.value,
                                updated_at = excluded.updated_at
                        """, (key, value, datetime.now(timezone.utc).isoformat()))
                        conn.commit()
                    except sqlite3.Error:
                        conn.rollback()
                        raise
            except sqlite3.Error as e:
                raise StoreError(
                    f"Failed to write key '{key}': {e}",
                    details={"key": key, "original_error": str(e)}
                ) from e

