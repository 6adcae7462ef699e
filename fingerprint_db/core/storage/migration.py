"""Schema versioning and migrations.

The schema version is stored in SQLite's ``user_version`` pragma. Databases
written before versioning existed report version 0 but already contain the
``fingerprint`` table, so "version 0" alone cannot tell a brand-new file from a
legacy one; the presence of a legacy table decides which path is taken.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import aiosqlite

from fingerprint_db.core.exceptions import (
    DuplicateManagerError,
    NoManagersRegisteredError,
    SchemaVersionError,
    UnknownMigrationError,
)
from fingerprint_db.core.storage.artifacts import GitHubArtifactStorage
from fingerprint_db.core.storage.connection import Database
from fingerprint_db.core.storage.fingerprints import FINGERPRINT_TABLE

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 1

# Tables that existed before the schema was versioned.
LEGACY_TABLES = (FINGERPRINT_TABLE,)

MigrationStep = Callable[[Database], Awaitable[None]]


class SchemaParticipant(Protocol):
    """Something that owns tables and can create them on an empty database."""

    async def create_initial_tables(self, db: Database) -> None:
        """Create this participant's tables at the current schema version."""
        ...


async def _migrate_to_1(db: Database) -> None:
    logger.info("Migration 0 -> 1: adding github_artifacts table and fingerprint.platform column")
    await GitHubArtifactStorage.create_table_if_not_exists(db)
    if "platform" not in await db.column_names(FINGERPRINT_TABLE):
        await db.run(f"ALTER TABLE {FINGERPRINT_TABLE} ADD COLUMN platform TEXT")


# Keyed by the version each step migrates *to*.
MIGRATIONS: dict[int, MigrationStep] = {
    1: _migrate_to_1,
}


class DbMigrationCoordinator:
    """Brings a connection to the target schema version before it is used."""

    def __init__(self, target_version: int = CURRENT_SCHEMA_VERSION) -> None:
        self._target_version = target_version
        self._managers: dict[str, SchemaParticipant] = {}

    def register_manager(self, manager_id: str, manager: SchemaParticipant) -> None:
        """Register a participant; creation runs in registration order."""
        if manager_id in self._managers:
            raise DuplicateManagerError(f"DbManager with id '{manager_id}' is already registered")
        self._managers[manager_id] = manager

    async def initialize_database(self, db: Database) -> None:
        """Create or migrate the schema, then stamp the target version."""
        if not self._managers:
            raise NoManagersRegisteredError(
                "No DbManagers registered. Call register_manager() first."
            )

        current = await self.get_current_database_version(db)
        target = self.get_target_database_version()

        if current > target:
            raise SchemaVersionError(
                f"Database version {current} is higher than expected {target}. "
                "This might indicate a newer version of the software was used previously."
            )

        if current == 0 and not await self._legacy_tables_exist(db):
            await self._run_initial_creation(db)
        elif current < target:
            await self._run_migrations(db, current, target)

        await self._set_database_version(db, target)

    async def get_current_database_version(self, db: Database) -> int:
        """Return the stored schema version, or 0 if it cannot be read."""
        try:
            row = await db.get("PRAGMA user_version")
        except (aiosqlite.Error, ValueError) as e:
            logger.debug("Could not read user_version, treating database as unversioned: %s", e)
            return 0
        if row is None or row[0] is None:
            return 0
        return int(row[0])

    def get_target_database_version(self) -> int:
        return self._target_version

    async def _run_initial_creation(self, db: Database) -> None:
        logger.info("Creating new database schema at version %d", self._target_version)
        for manager_id, manager in self._managers.items():
            logger.debug("Creating tables for %s", manager_id)
            await manager.create_initial_tables(db)

    async def _run_migrations(self, db: Database, current: int, target: int) -> None:
        logger.info("Planning to run database migrations from version %d to %d", current, target)
        for version in range(current, target):
            step = MIGRATIONS.get(version + 1)
            if step is None:
                raise UnknownMigrationError(
                    f"Unknown migration step from version {version} to {version + 1}"
                )
            await step(db)

    async def _legacy_tables_exist(self, db: Database) -> bool:
        for table in LEGACY_TABLES:
            if await db.table_exists(table):
                return True
        return False

    async def _set_database_version(self, db: Database, version: int) -> None:
        # PRAGMA values cannot be bound parameters.
        await db.run(f"PRAGMA user_version = {int(version)}")
