"""Repository that coordinates all storage operations."""

from __future__ import annotations

import logging
from pathlib import Path

from fingerprint_db.core.exceptions import DatabaseNotInitializedError, FingerprintNotFoundError
from fingerprint_db.core.models import (
    DatabaseStats,
    FingerprintPayload,
    GitHubArtifact,
    parse_timestamp,
)
from fingerprint_db.core.storage.artifacts import GITHUB_ARTIFACTS_TABLE, GitHubArtifactStorage
from fingerprint_db.core.storage.connection import MEMORY_PATH, Database, open_database
from fingerprint_db.core.storage.fingerprints import FINGERPRINT_TABLE, FingerprintStorage
from fingerprint_db.core.storage.migration import DbMigrationCoordinator

logger = logging.getLogger(__name__)


class FingerprintRepository:
    """Facade that owns the database handle and both storages.

    Construction does no I/O. ``open()`` (or ``async with``) opens the file and
    brings its schema up to date; every storage call before that raises
    DatabaseNotInitializedError.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        self._db: Database | None = None

        self.fingerprints = FingerprintStorage(self._get_database)
        self.artifacts = GitHubArtifactStorage(self._get_database)

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _get_database(self) -> Database:
        if self._db is None:
            raise DatabaseNotInitializedError("Database not initialized. Call open() first.")
        return self._db

    async def open(self) -> Database:
        """Open the database and run schema creation or migrations."""
        if self._db is not None:
            return self._db

        if str(self._db_path) != MEMORY_PATH:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        db = await open_database(self._db_path)

        coordinator = DbMigrationCoordinator()
        coordinator.register_manager("fingerprint", self.fingerprints)
        coordinator.register_manager("github-artifacts", self.artifacts)
        try:
            await coordinator.initialize_database(db)
        except BaseException:
            await db.close()
            raise

        self._db = db
        logger.info("Fingerprint database ready at %s", self._db_path)
        return db

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()

    async def __aenter__(self) -> FingerprintRepository:
        await self.open()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        await self.close()

    async def get_first_github_artifact(
        self, fingerprint_hash: str, platform: str
    ) -> GitHubArtifact | None:
        """Find the artifact a build with this fingerprint can reuse.

        The artifact must be for ``platform``; its fingerprint row must be for
        the same platform or have no platform (legacy rows match any). The
        oldest fingerprint wins, then the oldest artifact under it.
        """
        db = self._get_database()
        row = await db.get(
            f"""
            SELECT ga.*
            FROM {FINGERPRINT_TABLE} f
            JOIN {GITHUB_ARTIFACTS_TABLE} ga ON f.id = ga.fingerprint_id
            WHERE f.fingerprint_hash = ?
              AND ga.platform = ?
              AND (f.platform = ? OR f.platform IS NULL)
            ORDER BY f.id ASC, ga.id ASC
            LIMIT 1
            """,
            (fingerprint_hash, platform, platform),
        )
        return GitHubArtifact.from_row(row) if row is not None else None

    async def query_reusable_artifact(
        self, fingerprint_hash: str, platform: str, is_empty_diff: bool
    ) -> GitHubArtifact | None:
        """Like get_first_github_artifact, but only when nothing changed."""
        artifact = await self.get_first_github_artifact(fingerprint_hash, platform)
        logger.info(
            "Querying artifact - platform[%s] hash[%s] isEmptyDiff[%s] githubArtifact[%s]",
            platform,
            fingerprint_hash,
            is_empty_diff,
            artifact.artifact_url if artifact else "",
        )
        if artifact is None or not is_empty_diff:
            return None
        return artifact

    async def record_github_artifact(
        self,
        git_commit_hash: str,
        fingerprint: FingerprintPayload,
        platform: str,
        artifact_id: str,
        artifact_url: str,
        artifact_digest: str,
        workflow_run_id: str,
    ) -> GitHubArtifact:
        """Record a commit's fingerprint and attach a finished build to it."""
        await self.fingerprints.upsert_by_git_commit_hash(git_commit_hash, fingerprint)
        entity = await self.fingerprints.get_by_git_commit_hash(git_commit_hash)
        if entity is None:
            raise FingerprintNotFoundError(
                f"Fingerprint for commit '{git_commit_hash}' not found after upsert"
            )

        artifact_pk = await self.artifacts.insert(
            fingerprint_id=entity.id,
            platform=platform,
            artifact_id=artifact_id,
            artifact_url=artifact_url,
            artifact_digest=artifact_digest,
            workflow_run_id=workflow_run_id,
        )
        artifact = GitHubArtifact(
            id=artifact_pk,
            fingerprint_id=entity.id,
            platform=platform,
            artifact_id=artifact_id,
            artifact_url=artifact_url,
            artifact_digest=artifact_digest,
            workflow_run_id=workflow_run_id,
        )
        logger.info(
            "Recorded artifact %s for commit %s (platform %s)",
            artifact_id,
            git_commit_hash,
            platform,
        )
        return artifact

    async def get_stats(self) -> DatabaseStats:
        """Get database statistics."""
        db = self._get_database()
        version_row = await db.get("PRAGMA user_version")
        last_updated = await db.get(f"SELECT MAX(updated_at) FROM {FINGERPRINT_TABLE}")
        return DatabaseStats(
            schema_version=version_row[0] if version_row is not None else 0,
            fingerprints=await self.fingerprints.count(),
            artifacts=await self.artifacts.count(),
            last_updated=parse_timestamp(last_updated[0]) if last_updated is not None else None,
        )


def get_default_db_path(root: Path) -> Path:
    """Get the default database path under a tool cache directory."""
    return root / "fingerprint-storage" / "fingerprint.db"
