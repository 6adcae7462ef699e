"""Fingerprint DB custom exceptions."""


class FingerprintDbError(Exception):
    """Base exception for Fingerprint DB errors."""


class DatabaseNotInitializedError(FingerprintDbError):
    """The database handle was used before it was opened."""


class DuplicateManagerError(FingerprintDbError):
    """A schema participant id was registered twice."""


class NoManagersRegisteredError(FingerprintDbError):
    """Initialization was attempted without any schema participants."""


class SchemaVersionError(FingerprintDbError):
    """The stored schema version is newer than this build understands."""


class UnknownMigrationError(FingerprintDbError):
    """No migration step is defined for the requested version."""


class StateFileError(FingerprintDbError):
    """Fingerprint state file is missing or unreadable."""


class FingerprintNotFoundError(FingerprintDbError):
    """A fingerprint row that must exist could not be read back."""
