"""
Key-value storage used to persist the knowledge corpus across sessions.

The corpus is stored as a single JSON string under one key, so the store
only needs get/set. The sqlite implementation follows the same
connection-per-call pattern as the rest of the project.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, Optional, Protocol

from . import config

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqliteKeyValueStore:
    """Persistent store backed by a single sqlite table."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.KB_DB_PATH
        self._initialized = False

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Creates the kv table if it does not exist yet."""
        parent = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(parent, exist_ok=True)
        with self.get_conn() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP
            )
            """)
            conn.commit()
        self._initialized = True

    def get(self, key: str) -> Optional[str]:
        if not self._initialized:
            self.init_db()
        with self.get_conn() as conn:
            cur = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """Inserts or replaces the value stored under key."""
        if not self._initialized:
            self.init_db()
        with self.get_conn() as conn:
            conn.execute("""
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at;
            """, (key, value))
            conn.commit()
        logger.debug(f"[KV_STORE] Saved key '{key}' ({len(value):,} chars)")
