"""MemoryStore — persistence for pinned memories via libsql."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.db import connection
from src.memories.models import Memory

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS memories (
    id          TEXT PRIMARY KEY,
    message     TEXT NOT NULL,
    receiver    TEXT NOT NULL,
    latitude    REAL NOT NULL,
    longitude   REAL NOT NULL,
    created_at  TEXT NOT NULL,
    has_image   INTEGER NOT NULL DEFAULT 0,
    image_path  TEXT,
    image_url   TEXT,
    receiver_folded TEXT NOT NULL DEFAULT ''
)
"""

_COLUMNS = (
    "id, message, receiver, latitude, longitude, created_at, has_image, image_path, image_url"
)


def _like_pattern(text: str) -> str:
    """Wrap *text* in ``%`` after escaping LIKE wildcards."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class MemoryStore:
    """Persists memories in SQLite / Turso.

    Rows are insert-only: a memory never changes once created.
    Singleton accessed via ``MemoryStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: MemoryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> MemoryStore:
        """Return the shared MemoryStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _ensure_table(self, db) -> None:  # noqa: ANN001
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True

    # -- Write -----------------------------------------------------------------

    async def insert(self, memory: Memory) -> Memory:
        """Insert a new memory. Returns the same object."""
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            await db.execute(
                f"INSERT INTO memories ({_COLUMNS}, receiver_folded)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (*memory.to_row(), memory.receiver.casefold()),
            )
            await db.commit()
        logger.info("Stored memory %s for %r", memory.id, memory.receiver)
        return memory

    # -- Read ------------------------------------------------------------------

    async def get_by_id(self, memory_id: str) -> Memory | None:
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            row = await db.fetchone(
                f"SELECT {_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
            )
        return Memory.from_row(row) if row else None

    async def list_all(self) -> list[Memory]:
        """Return every memory, oldest first."""
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            rows = await db.fetchall(
                f"SELECT {_COLUMNS} FROM memories ORDER BY created_at, id"
            )
        return [Memory.from_row(row) for row in rows]

    async def search_by_receiver(self, text: str) -> list[Memory]:
        """Case-insensitive substring match on the receiver field.

        Matching runs on ``str.casefold()`` forms, so non-ASCII letters fold too.
        """
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            rows = await db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM memories
                WHERE receiver_folded LIKE ? ESCAPE '\\'
                ORDER BY created_at, id
                """,
                (_like_pattern(text.casefold()),),
            )
        return [Memory.from_row(row) for row in rows]
