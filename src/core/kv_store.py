"""Key-value persistence channels for the state snapshot.

The store only needs ``get``/``set`` of string values under a versioned key. Two
implementations are provided: an in-memory one (tests, ephemeral runs) and a
SQLite one backed by aiosqlite.
"""

import logging
from pathlib import Path
from typing import Protocol

import aiosqlite

from src.core.errors import KeyValueStoreError


logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Generic async key-value channel."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Dictionary-backed channel."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Initialize in-memory channel."""
        self._data: dict[str, str] = dict(initial or {})
        self.write_count = 0

    async def get(self, key: str) -> str | None:
        """Get value for key, or None if missing."""
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store value under key."""
        self._data[key] = value
        self.write_count += 1

    def raw(self, key: str) -> str | None:
        """Synchronous read used by tests and diagnostics."""
        return self._data.get(key)


class SQLiteKeyValueStore:
    """SQLite channel using a single ``kv_store`` table."""

    def __init__(self, db_path: str) -> None:
        """Initialize SQLite channel.

        Args:
            db_path: Path to the SQLite database file (created on first use)
        """
        self._db_path = Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the connection and create the table if needed."""
        if self._conn is not None:
            return

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.execute("PRAGMA journal_mode = WAL")
            await self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT NOT NULL, "
                "updated TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP)"
            )
            await self._conn.commit()
        except (aiosqlite.Error, OSError) as e:
            msg = f"Failed to open key-value store at {self._db_path}: {e}"
            raise KeyValueStoreError(msg) from e

        logger.info("Key-value store ready", extra={"db_path": str(self._db_path)})

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.connect()
        assert self._conn is not None  # For type checker
        return self._conn

    async def get(self, key: str) -> str | None:
        """Get value for key, or None if missing."""
        conn = await self._connection()
        try:
            async with conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            msg = f"Failed to read key {key}: {e}"
            raise KeyValueStoreError(msg) from e
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        conn = await self._connection()
        try:
            await conn.execute(
                "INSERT INTO kv_store (key, value, updated) VALUES (?, ?, CURRENT_TIMESTAMP) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated",
                (key, value),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            msg = f"Failed to write key {key}: {e}"
            raise KeyValueStoreError(msg) from e
