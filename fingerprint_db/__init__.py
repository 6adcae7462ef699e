"""
Fingerprint DB: a persistent cache from project fingerprints to build artifacts.

Fingerprint DB records the fingerprint of a project at each git commit and the
build artifacts produced for it, so CI can reuse a previous build when nothing
that affects the native build has changed.

Usage:
    from fingerprint_db.core import FingerprintRepository, get_default_db_path

    async with FingerprintRepository(get_default_db_path(cache_dir)) as repo:
        artifact = await repo.get_first_github_artifact(fingerprint_hash, "ios")
"""

__version__ = "0.1.0"
