"""Fingerprint storage operations."""

from __future__ import annotations

import json
from collections.abc import Callable

from fingerprint_db.core.models import FingerprintEntity, FingerprintPayload, FingerprintSource
from fingerprint_db.core.storage.connection import Database

FINGERPRINT_TABLE = "fingerprint"

_SCHEMA = f"""
CREATE TABLE {FINGERPRINT_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    eas_build_id TEXT,
    git_commit_hash TEXT NOT NULL,
    fingerprint_hash TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    platform TEXT,
    created_at TEXT NOT NULL DEFAULT (DATETIME('now')),
    updated_at TEXT NOT NULL DEFAULT (DATETIME('now'))
)
"""

_INDEXES = [
    f"CREATE UNIQUE INDEX IF NOT EXISTS idx_git_commit_hash ON {FINGERPRINT_TABLE} (git_commit_hash)",
    f"CREATE INDEX IF NOT EXISTS idx_fingerprint_hash ON {FINGERPRINT_TABLE} (fingerprint_hash)",
]

_TRIGGERS = [
    f"""
    CREATE TRIGGER IF NOT EXISTS update_fingerprint_updated_at
    AFTER UPDATE ON {FINGERPRINT_TABLE}
    BEGIN
        UPDATE {FINGERPRINT_TABLE} SET updated_at = DATETIME('now') WHERE id = NEW.id;
    END
    """,
]


class FingerprintStorage:
    """Storage operations for fingerprints, keyed by git commit hash.

    "First" always means lowest id. Timestamps only have second resolution and
    tie easily, while ids are assigned in insertion order.
    """

    def __init__(self, get_database: Callable[[], Database]) -> None:
        self._get_database = get_database

    async def create_initial_tables(self, db: Database) -> None:
        await db.run(_SCHEMA)
        for statement in _INDEXES + _TRIGGERS:
            await db.run(statement)

    async def upsert_by_git_commit_hash(
        self,
        git_commit_hash: str,
        fingerprint: FingerprintPayload,
        eas_build_id: str | None = None,
        platform: str | None = None,
    ) -> None:
        """Insert a fingerprint for a commit, or overwrite the existing one.

        On conflict ``id`` and ``created_at`` are kept and the update trigger
        refreshes ``updated_at``.
        """
        db = self._get_database()
        build_id = eas_build_id if eas_build_id is not None else ""
        payload = json.dumps(fingerprint)
        await db.run(
            f"""
            INSERT INTO {FINGERPRINT_TABLE}
                (git_commit_hash, eas_build_id, fingerprint_hash, fingerprint, platform)
            VALUES (?, ?, ?, json(?), ?)
            ON CONFLICT(git_commit_hash) DO UPDATE SET
                eas_build_id = excluded.eas_build_id,
                fingerprint_hash = excluded.fingerprint_hash,
                fingerprint = excluded.fingerprint,
                platform = excluded.platform
            """,
            (git_commit_hash, build_id, fingerprint["hash"], payload, platform),
        )

    async def get_by_git_commit_hash(self, git_commit_hash: str) -> FingerprintEntity | None:
        """Get the fingerprint recorded for a commit, or None."""
        db = self._get_database()
        row = await db.get(
            f"SELECT * FROM {FINGERPRINT_TABLE} WHERE git_commit_hash = ?",
            (git_commit_hash,),
        )
        return FingerprintEntity.from_row(row) if row is not None else None

    async def get_first_by_fingerprint_hash(self, fingerprint_hash: str) -> FingerprintEntity | None:
        """Get the earliest recorded commit with this fingerprint hash."""
        db = self._get_database()
        row = await db.get(
            f"SELECT * FROM {FINGERPRINT_TABLE} WHERE fingerprint_hash = ? ORDER BY id ASC LIMIT 1",
            (fingerprint_hash,),
        )
        return FingerprintEntity.from_row(row) if row is not None else None

    async def query_by_fingerprint_hash(self, fingerprint_hash: str) -> list[FingerprintEntity]:
        """Get every commit with this fingerprint hash, oldest first."""
        db = self._get_database()
        rows = await db.all(
            f"SELECT * FROM {FINGERPRINT_TABLE} WHERE fingerprint_hash = ? ORDER BY id ASC",
            (fingerprint_hash,),
        )
        return [FingerprintEntity.from_row(row) for row in rows]

    async def get_latest_eas_entity_by_fingerprint_hash(
        self, fingerprint_hash: str
    ) -> FingerprintEntity | None:
        """Get the most recently updated row for the hash that has an EAS build id."""
        db = self._get_database()
        row = await db.get(
            f"""
            SELECT * FROM {FINGERPRINT_TABLE}
            WHERE eas_build_id IS NOT NULL AND eas_build_id != '' AND fingerprint_hash = ?
            ORDER BY updated_at DESC, id DESC
            LIMIT 1
            """,
            (fingerprint_hash,),
        )
        return FingerprintEntity.from_row(row) if row is not None else None

    async def query_eas_build_ids_by_fingerprint_hash(self, fingerprint_hash: str) -> list[str]:
        """Get the EAS build ids recorded for a fingerprint hash."""
        db = self._get_database()
        rows = await db.all(
            f"SELECT eas_build_id FROM {FINGERPRINT_TABLE} WHERE fingerprint_hash = ? ORDER BY id ASC",
            (fingerprint_hash,),
        )
        return [row["eas_build_id"] or "" for row in rows]

    async def get_fingerprint_sources(self, fingerprint_hash: str) -> list[FingerprintSource] | None:
        """Get only the ``sources`` list of the first matching fingerprint."""
        db = self._get_database()
        row = await db.get(
            f"""
            SELECT json_extract(fingerprint, '$.sources') AS sources
            FROM {FINGERPRINT_TABLE}
            WHERE fingerprint_hash = ?
            ORDER BY id ASC
            LIMIT 1
            """,
            (fingerprint_hash,),
        )
        if row is None or row["sources"] is None:
            return None
        return json.loads(row["sources"])

    async def delete_by_git_commit_hash(self, git_commit_hash: str) -> int:
        """Delete a commit's fingerprint; its artifacts are removed by cascade."""
        db = self._get_database()
        cursor = await db.run(
            f"DELETE FROM {FINGERPRINT_TABLE} WHERE git_commit_hash = ?",
            (git_commit_hash,),
        )
        return cursor.rowcount

    async def count(self) -> int:
        db = self._get_database()
        row = await db.get(f"SELECT COUNT(*) FROM {FINGERPRINT_TABLE}")
        return row[0] if row is not None else 0
