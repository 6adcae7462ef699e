"""Async handle around a single SQLite connection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

Params = Iterable[Any]


class Database:
    """Statement-level access to one open connection.

    The connection runs in autocommit mode, so every statement is its own
    transaction and no explicit commit is needed.
    """

    def __init__(self, conn: aiosqlite.Connection, path: str) -> None:
        self._conn = conn
        self.path = path

    async def run(self, sql: str, params: Params = ()) -> aiosqlite.Cursor:
        """Execute a statement and return its cursor (for lastrowid/rowcount)."""
        cursor = await self._conn.execute(sql, tuple(params))
        await cursor.close()
        return cursor

    async def get(self, sql: str, params: Params = ()) -> aiosqlite.Row | None:
        """Execute a query and return the first row, or None."""
        async with self._conn.execute(sql, tuple(params)) as cursor:
            return await cursor.fetchone()

    async def all(self, sql: str, params: Params = ()) -> list[aiosqlite.Row]:
        """Execute a query and return every row."""
        async with self._conn.execute(sql, tuple(params)) as cursor:
            return list(await cursor.fetchall())

    async def table_exists(self, name: str) -> bool:
        row = await self.get(
            "SELECT COUNT(*) AS count FROM sqlite_master WHERE type = 'table' AND name = ?",
            (name,),
        )
        return row is not None and row["count"] > 0

    async def column_names(self, table: str) -> list[str]:
        # PRAGMA arguments cannot be bound; table names are internal constants.
        rows = await self.all(f"PRAGMA table_info({table})")
        return [row["name"] for row in rows]

    async def close(self) -> None:
        await self._conn.close()
        logger.debug("Closed database %s", self.path)


async def open_database(path: Path | str) -> Database:
    """Open (creating if needed) the database file at ``path``."""
    location = str(path)
    conn = await aiosqlite.connect(location, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    # Cascading deletes from fingerprint to github_artifacts depend on this.
    await conn.execute("PRAGMA foreign_keys = ON")
    logger.debug("Opened database %s", location)
    return Database(conn, location)
