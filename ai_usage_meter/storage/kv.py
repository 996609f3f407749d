"""
Key-value persistence used by the usage ledger.

Any object with `get`, `set` and `remove` works as a store; the SQLite
store is the default and the in-memory store serves tests and
throwaway sessions.
"""

import os
from typing import Dict, Hashable, Optional, Protocol

from .db import DEFAULT_DB_PATH, get_connection, initialize_schema


class KeyValueStore(Protocol):
    """Minimal string key-value store."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class SQLiteKeyValueStore:
    """Key-value store backed by a single SQLite table."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        initialize_schema(db_path)

    @property
    def lock_key(self) -> Hashable:
        """Identifies the database file, so ledgers sharing it share a lock."""
        return ("sqlite", os.path.abspath(self.db_path))

    def get(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


class MemoryKeyValueStore:
    """Process-local key-value store."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    @property
    def lock_key(self) -> Hashable:
        return ("memory", id(self))

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
