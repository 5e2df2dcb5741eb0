"""SQLite preference store.

Provides persistent preference storage using a SQLite database file.
Uses aiosqlite for async access; values are stored JSON-encoded.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from .base import PreferenceStore

logger = structlog.get_logger(__name__)


class SQLitePreferenceStore(PreferenceStore):
    """SQLite-backed preference store.

    Stores one row per key. Survives process restarts.
    """

    def __init__(self, path: str | Path = "./parley.db"):
        super().__init__()
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create the schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._connection.commit()
        logger.debug("store.connected", path=str(self._db_path))

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Preference store is not connected; call connect() first")
        return self._connection

    async def get(self, key: str, default: Any = None) -> Any:
        connection = self._require_connection()
        async with connection.execute(
            "SELECT value FROM preferences WHERE key = ?",
            (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    async def set(self, key: str, value: Any) -> None:
        connection = self._require_connection()
        await connection.execute("""
            INSERT INTO preferences (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """, (key, json.dumps(value, ensure_ascii=False), datetime.now(timezone.utc).isoformat()))
        await connection.commit()
        self._notify(key, value)

    async def remove(self, key: str) -> None:
        connection = self._require_connection()
        cursor = await connection.execute("DELETE FROM preferences WHERE key = ?", (key,))
        await connection.commit()
        if cursor.rowcount:
            self._notify(key)

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
