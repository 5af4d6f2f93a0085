"""Async access to the memories database over libsql.

The ``libsql`` driver is synchronous, so every call is pushed to a worker
thread with ``asyncio.to_thread()``.  The target is picked from settings:

- **Production**: ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso
- **Dev/test**: no Turso URL → local SQLite file at ``database_path``
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


class AsyncConnection:
    """Awaitable facade over a synchronous libsql connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> Any:
        return await asyncio.to_thread(self._conn.execute, sql, params)

    async def fetchone(self, sql: str, params: tuple = ()) -> tuple | None:
        def _run() -> tuple | None:
            return self._conn.execute(sql, params).fetchone()

        return await asyncio.to_thread(_run)

    async def fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        def _run() -> list[tuple]:
            return self._conn.execute(sql, params).fetchall()

        return await asyncio.to_thread(_run)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def open_connection(local_path: Path | None = None) -> AsyncConnection:
    """Open a connection to the memories database.

    *local_path* (used for test isolation) wins over every setting.
    """
    if local_path is not None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        return AsyncConnection(await asyncio.to_thread(_open_local, str(local_path)))

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return AsyncConnection(conn)

    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    return AsyncConnection(await asyncio.to_thread(_open_local, str(settings.database_path)))


@asynccontextmanager
async def connection(local_path: Path | None = None) -> AsyncIterator[AsyncConnection]:
    """Yield an open connection and close it afterwards."""
    db = await open_connection(local_path)
    try:
        yield db
    finally:
        await db.close()
