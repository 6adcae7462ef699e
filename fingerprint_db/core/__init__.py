"""
Core module: data models, exceptions, state files and storage.

Models (models.py):
    - FingerprintEntity: A fingerprint recorded for one git commit
    - GitHubArtifact: A platform-specific build output of a fingerprint
    - DatabaseStats: Row counts and schema version

Exceptions (exceptions.py):
    - FingerprintDbError: Base exception for all fingerprint DB errors
    - SchemaVersionError: Database was written by a newer schema
    - DatabaseNotInitializedError: Storage used before open()

State (state.py):
    - FingerprintState: Fingerprint outputs handed between CI steps

Storage (storage/):
    - FingerprintRepository: Facade for all database operations
"""

from fingerprint_db.core.exceptions import (
    DatabaseNotInitializedError,
    DuplicateManagerError,
    FingerprintDbError,
    FingerprintNotFoundError,
    NoManagersRegisteredError,
    SchemaVersionError,
    StateFileError,
    UnknownMigrationError,
)
from fingerprint_db.core.models import DatabaseStats, FingerprintEntity, GitHubArtifact
from fingerprint_db.core.state import (
    FingerprintState,
    load_fingerprint_state,
    save_fingerprint_state,
)
from fingerprint_db.core.storage import FingerprintRepository, get_default_db_path

__all__ = [
    # Models
    "FingerprintEntity",
    "GitHubArtifact",
    "DatabaseStats",
    # Exceptions
    "FingerprintDbError",
    "FingerprintNotFoundError",
    "DatabaseNotInitializedError",
    "DuplicateManagerError",
    "NoManagersRegisteredError",
    "SchemaVersionError",
    "UnknownMigrationError",
    "StateFileError",
    # State
    "FingerprintState",
    "load_fingerprint_state",
    "save_fingerprint_state",
    # Storage
    "FingerprintRepository",
    "get_default_db_path",
]
