"""Data models for Fingerprint DB."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

# Opaque JSON produced by the fingerprint tool; stored and returned unchanged.
FingerprintPayload = dict[str, Any]
FingerprintSource = dict[str, Any]


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a SQLite ``DATETIME()`` string as an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


@dataclass
class FingerprintEntity:
    """One fingerprint evaluation of the project at a git commit."""

    id: int
    eas_build_id: str
    git_commit_hash: str
    fingerprint_hash: str
    fingerprint: FingerprintPayload
    # None on rows recorded before platforms were tracked; matches any platform.
    platform: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FingerprintEntity:
        """Create a FingerprintEntity from a database row."""
        return cls(
            id=row["id"],
            eas_build_id=row["eas_build_id"] or "",
            git_commit_hash=row["git_commit_hash"],
            fingerprint_hash=row["fingerprint_hash"],
            fingerprint=json.loads(row["fingerprint"]),
            platform=row["platform"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    @property
    def sources(self) -> list[FingerprintSource]:
        return self.fingerprint.get("sources", [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eas_build_id": self.eas_build_id,
            "git_commit_hash": self.git_commit_hash,
            "fingerprint_hash": self.fingerprint_hash,
            "fingerprint": self.fingerprint,
            "platform": self.platform,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class GitHubArtifact:
    """A platform-specific build output attached to a fingerprint."""

    id: int
    fingerprint_id: int
    platform: str
    artifact_id: str
    artifact_url: str
    artifact_digest: str
    workflow_run_id: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> GitHubArtifact:
        """Create a GitHubArtifact from a database row."""
        return cls(
            id=row["id"],
            fingerprint_id=row["fingerprint_id"],
            platform=row["platform"],
            artifact_id=row["artifact_id"],
            artifact_url=row["artifact_url"],
            artifact_digest=row["artifact_digest"],
            workflow_run_id=row["workflow_run_id"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fingerprint_id": self.fingerprint_id,
            "platform": self.platform,
            "artifact_id": self.artifact_id,
            "artifact_url": self.artifact_url,
            "artifact_digest": self.artifact_digest,
            "workflow_run_id": self.workflow_run_id,
        }


@dataclass
class DatabaseStats:
    """Summary of what a fingerprint database holds."""

    schema_version: int
    fingerprints: int
    artifacts: int
    last_updated: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "fingerprints": self.fingerprints,
            "artifacts": self.artifacts,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
