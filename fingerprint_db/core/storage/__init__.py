"""
Storage layer: SQLite persistence for fingerprints and their build artifacts.

This module provides database operations split by concern:

Components:
    - FingerprintRepository: Main facade that owns the connection and storages
    - DbMigrationCoordinator: Creates or migrates the schema on open
    - FingerprintStorage: CRUD/upsert operations for the fingerprint table
    - GitHubArtifactStorage: CRUD operations for the github_artifacts table

Database Schema (version 1):
    fingerprint: id, eas_build_id, git_commit_hash (unique), fingerprint_hash,
                 fingerprint (JSON), platform, created_at, updated_at
    github_artifacts: id, fingerprint_id -> fingerprint.id (cascade), platform,
                      artifact_id, artifact_url, artifact_digest, workflow_run_id

The database is stored at fingerprint-storage/fingerprint.db under the tool
cache directory.
"""

from fingerprint_db.core.storage.artifacts import GitHubArtifactStorage
from fingerprint_db.core.storage.connection import Database, open_database
from fingerprint_db.core.storage.fingerprints import FingerprintStorage
from fingerprint_db.core.storage.migration import (
    CURRENT_SCHEMA_VERSION,
    DbMigrationCoordinator,
    SchemaParticipant,
)
from fingerprint_db.core.storage.repository import FingerprintRepository, get_default_db_path

__all__ = [
    "FingerprintRepository",
    "FingerprintStorage",
    "GitHubArtifactStorage",
    "DbMigrationCoordinator",
    "SchemaParticipant",
    "CURRENT_SCHEMA_VERSION",
    "Database",
    "open_database",
    "get_default_db_path",
]
