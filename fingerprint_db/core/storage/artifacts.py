"""GitHub artifact storage operations."""

from __future__ import annotations

from collections.abc import Callable

from fingerprint_db.core.models import GitHubArtifact
from fingerprint_db.core.storage.connection import Database

GITHUB_ARTIFACTS_TABLE = "github_artifacts"

_COLUMNS = """
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint_id INTEGER NOT NULL REFERENCES fingerprint(id) ON DELETE CASCADE,
    platform TEXT NOT NULL,
    artifact_id TEXT NOT NULL,
    artifact_url TEXT NOT NULL,
    artifact_digest TEXT NOT NULL,
    workflow_run_id TEXT NOT NULL
"""


class GitHubArtifactStorage:
    """Storage operations for build artifacts (children of fingerprint rows)."""

    def __init__(self, get_database: Callable[[], Database]) -> None:
        self._get_database = get_database

    async def create_initial_tables(self, db: Database) -> None:
        await db.run(f"CREATE TABLE {GITHUB_ARTIFACTS_TABLE} ({_COLUMNS})")

    @staticmethod
    async def create_table_if_not_exists(db: Database) -> None:
        await db.run(f"CREATE TABLE IF NOT EXISTS {GITHUB_ARTIFACTS_TABLE} ({_COLUMNS})")

    async def insert(
        self,
        fingerprint_id: int,
        platform: str,
        artifact_id: str,
        artifact_url: str,
        artifact_digest: str,
        workflow_run_id: str,
    ) -> int:
        """Insert an artifact and return its ID.

        Duplicate ``artifact_id`` values are not rejected here.
        """
        db = self._get_database()
        cursor = await db.run(
            f"""
            INSERT INTO {GITHUB_ARTIFACTS_TABLE}
                (fingerprint_id, platform, artifact_id, artifact_url, artifact_digest, workflow_run_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (fingerprint_id, platform, artifact_id, artifact_url, artifact_digest, workflow_run_id),
        )
        return cursor.lastrowid  # type: ignore[return-value]

    async def get_by_id(self, artifact_pk: int) -> GitHubArtifact | None:
        db = self._get_database()
        row = await db.get(f"SELECT * FROM {GITHUB_ARTIFACTS_TABLE} WHERE id = ?", (artifact_pk,))
        return GitHubArtifact.from_row(row) if row is not None else None

    async def get_by_artifact_id(self, artifact_id: str) -> GitHubArtifact | None:
        db = self._get_database()
        row = await db.get(
            f"SELECT * FROM {GITHUB_ARTIFACTS_TABLE} WHERE artifact_id = ? ORDER BY id ASC LIMIT 1",
            (artifact_id,),
        )
        return GitHubArtifact.from_row(row) if row is not None else None

    async def get_by_fingerprint_id(self, fingerprint_id: int) -> list[GitHubArtifact]:
        """Get all artifacts for one fingerprint row, in insertion order."""
        db = self._get_database()
        rows = await db.all(
            f"SELECT * FROM {GITHUB_ARTIFACTS_TABLE} WHERE fingerprint_id = ? ORDER BY id ASC",
            (fingerprint_id,),
        )
        return [GitHubArtifact.from_row(row) for row in rows]

    async def delete_by_id(self, artifact_pk: int) -> int:
        db = self._get_database()
        cursor = await db.run(f"DELETE FROM {GITHUB_ARTIFACTS_TABLE} WHERE id = ?", (artifact_pk,))
        return cursor.rowcount

    async def delete_by_fingerprint_id(self, fingerprint_id: int) -> int:
        db = self._get_database()
        cursor = await db.run(
            f"DELETE FROM {GITHUB_ARTIFACTS_TABLE} WHERE fingerprint_id = ?",
            (fingerprint_id,),
        )
        return cursor.rowcount

    async def count(self) -> int:
        db = self._get_database()
        row = await db.get(f"SELECT COUNT(*) FROM {GITHUB_ARTIFACTS_TABLE}")
        return row[0] if row is not None else 0
