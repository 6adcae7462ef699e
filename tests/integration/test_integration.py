"""Integration tests for the repository facade, state files and CLI."""

import json
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from typer.testing import CliRunner

from fingerprint_db.cli import app
from fingerprint_db.core.exceptions import FingerprintNotFoundError
from fingerprint_db.core.state import (
    FingerprintState,
    load_fingerprint_state,
    save_fingerprint_state,
)
from fingerprint_db.core.storage import (
    CURRENT_SCHEMA_VERSION,
    FingerprintRepository,
    get_default_db_path,
    open_database,
)


def make_fingerprint(fingerprint_hash: str) -> dict:
    return {"sources": [], "hash": fingerprint_hash}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest_asyncio.fixture
async def repository():
    """Open an in-memory repository."""
    repo = FingerprintRepository(":memory:")
    await repo.open()
    yield repo
    await repo.close()


async def add_fingerprint(
    repo: FingerprintRepository, commit: str, fingerprint_hash: str, platform: str | None = None
) -> int:
    await repo.fingerprints.upsert_by_git_commit_hash(
        commit, make_fingerprint(fingerprint_hash), platform=platform
    )
    entity = await repo.fingerprints.get_by_git_commit_hash(commit)
    assert entity is not None
    return entity.id


async def add_artifact(
    repo: FingerprintRepository, fingerprint_id: int, artifact_id: str, platform: str
) -> int:
    return await repo.artifacts.insert(
        fingerprint_id=fingerprint_id,
        platform=platform,
        artifact_id=artifact_id,
        artifact_url=f"https://example.com/{artifact_id}",
        artifact_digest=f"sha256:{artifact_id}",
        workflow_run_id="42",
    )


class TestGetFirstGitHubArtifact:
    """Tests for resolving a reusable artifact by fingerprint hash and platform."""

    @pytest.mark.asyncio
    async def test_no_match_returns_none(self, repository: FingerprintRepository) -> None:
        """Test that a cache miss is None."""
        assert await repository.get_first_github_artifact("hash1", "ios") is None

    @pytest.mark.asyncio
    async def test_artifact_platform_must_match(self, repository: FingerprintRepository) -> None:
        """Test that an artifact for another platform is never returned."""
        fp_id = await add_fingerprint(repository, "c1", "hash1", "ios")
        await add_artifact(repository, fp_id, "android-build", "android")

        assert await repository.get_first_github_artifact("hash1", "ios") is None

    @pytest.mark.asyncio
    async def test_fingerprint_platform_mismatch_vetoes(
        self, repository: FingerprintRepository
    ) -> None:
        """Test that a fingerprint for another platform hides its matching artifacts."""
        fp_id = await add_fingerprint(repository, "c1", "hash1", "android")
        await add_artifact(repository, fp_id, "ios-build", "ios")

        assert await repository.get_first_github_artifact("hash1", "ios") is None

    @pytest.mark.asyncio
    async def test_null_platform_fingerprint_is_wildcard(
        self, repository: FingerprintRepository
    ) -> None:
        """Test that a legacy fingerprint without platform matches any platform."""
        fp_id = await add_fingerprint(repository, "c1", "hash1")
        await add_artifact(repository, fp_id, "ios-build", "ios")
        await add_artifact(repository, fp_id, "android-build", "android")

        ios = await repository.get_first_github_artifact("hash1", "ios")
        android = await repository.get_first_github_artifact("hash1", "android")

        assert ios is not None and ios.artifact_id == "ios-build"
        assert android is not None and android.artifact_id == "android-build"

    @pytest.mark.asyncio
    async def test_oldest_artifact_wins(self, repository: FingerprintRepository) -> None:
        """Test that the first inserted artifact under a fingerprint is returned."""
        fp_id = await add_fingerprint(repository, "c1", "hash1", "ios")
        for artifact_id in ("A", "B", "C"):
            await add_artifact(repository, fp_id, artifact_id, "ios")

        artifact = await repository.get_first_github_artifact("hash1", "ios")

        assert artifact is not None
        assert artifact.artifact_id == "A"

    @pytest.mark.asyncio
    async def test_oldest_fingerprint_wins_over_artifact_order(
        self, repository: FingerprintRepository
    ) -> None:
        """Test that fingerprint id order decides ties, not artifact insertion order."""
        f1 = await add_fingerprint(repository, "c1", "hash1", "ios")
        f2 = await add_fingerprint(repository, "c2", "hash1", "ios")
        await add_artifact(repository, f2, "from-f2", "ios")
        await add_artifact(repository, f1, "from-f1", "ios")

        artifact = await repository.get_first_github_artifact("hash1", "ios")

        assert artifact is not None
        assert artifact.artifact_id == "from-f1"
        assert artifact.fingerprint_id == f1

    @pytest.mark.asyncio
    async def test_other_hashes_are_ignored(self, repository: FingerprintRepository) -> None:
        """Test that only fingerprints with the requested hash are considered."""
        fp_id = await add_fingerprint(repository, "c1", "hash-other", "ios")
        await add_artifact(repository, fp_id, "other", "ios")

        assert await repository.get_first_github_artifact("hash1", "ios") is None


class TestRepositoryFlows:
    """Tests for the record and query flows used by CI steps."""

    @pytest.mark.asyncio
    async def test_record_github_artifact(self, repository: FingerprintRepository) -> None:
        """Test that recording creates the fingerprint and attaches the artifact."""
        artifact = await repository.record_github_artifact(
            "c1",
            make_fingerprint("hash1"),
            platform="ios",
            artifact_id="123",
            artifact_url="https://example.com/123",
            artifact_digest="sha256:123",
            workflow_run_id="99",
        )

        entity = await repository.fingerprints.get_by_git_commit_hash("c1")
        assert entity is not None
        assert artifact.fingerprint_id == entity.id
        found = await repository.get_first_github_artifact("hash1", "ios")
        assert found == artifact

    @pytest.mark.asyncio
    async def test_record_github_artifact_missing_fingerprint(
        self, repository: FingerprintRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a fingerprint that cannot be read back raises instead of asserting."""

        async def get_nothing(git_commit_hash: str):
            return None

        monkeypatch.setattr(repository.fingerprints, "get_by_git_commit_hash", get_nothing)

        with pytest.raises(FingerprintNotFoundError):
            await repository.record_github_artifact(
                "c1",
                make_fingerprint("hash1"),
                platform="ios",
                artifact_id="123",
                artifact_url="https://example.com/123",
                artifact_digest="sha256:123",
                workflow_run_id="99",
            )
        assert await repository.artifacts.count() == 0

    @pytest.mark.asyncio
    async def test_query_reusable_artifact_requires_empty_diff(
        self, repository: FingerprintRepository
    ) -> None:
        """Test that a non-empty fingerprint diff forces a rebuild."""
        fp_id = await add_fingerprint(repository, "c1", "hash1")
        await add_artifact(repository, fp_id, "build", "ios")

        reused = await repository.query_reusable_artifact("hash1", "ios", is_empty_diff=True)
        rebuilt = await repository.query_reusable_artifact("hash1", "ios", is_empty_diff=False)

        assert reused is not None and reused.artifact_id == "build"
        assert rebuilt is None

    @pytest.mark.asyncio
    async def test_stats(self, repository: FingerprintRepository) -> None:
        """Test that statistics count rows and report the schema version."""
        fp_id = await add_fingerprint(repository, "c1", "hash1")
        await add_artifact(repository, fp_id, "build", "ios")

        stats = await repository.get_stats()

        assert stats.schema_version == CURRENT_SCHEMA_VERSION
        assert stats.fingerprints == 1
        assert stats.artifacts == 1
        assert stats.last_updated is not None


class TestPersistence:
    """Tests for database files on disk."""

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, temp_dir: Path) -> None:
        """Test that a reopened file keeps its rows and version."""
        db_path = get_default_db_path(temp_dir)

        async with FingerprintRepository(db_path) as repo:
            fp_id = await add_fingerprint(repo, "c1", "hash1", "ios")
            await add_artifact(repo, fp_id, "build", "ios")

        assert db_path.exists()
        async with FingerprintRepository(db_path) as repo:
            artifact = await repo.get_first_github_artifact("hash1", "ios")
            stats = await repo.get_stats()

        assert artifact is not None and artifact.artifact_id == "build"
        assert stats.schema_version == CURRENT_SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_legacy_file_is_migrated(self, temp_dir: Path) -> None:
        """Test that a pre-versioning database keeps its rows and gains artifacts."""
        db_path = temp_dir / "legacy.db"
        db = await open_database(db_path)
        await db.run(
            """
            CREATE TABLE fingerprint (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                eas_build_id TEXT,
                git_commit_hash TEXT NOT NULL,
                fingerprint_hash TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (DATETIME('now')),
                updated_at TEXT NOT NULL DEFAULT (DATETIME('now'))
            )
            """
        )
        await db.run("CREATE UNIQUE INDEX idx_git_commit_hash ON fingerprint (git_commit_hash)")
        await db.run(
            "INSERT INTO fingerprint (eas_build_id, git_commit_hash, fingerprint_hash, fingerprint) "
            "VALUES (?, ?, ?, ?)",
            ("", "legacy", "hash1", json.dumps(make_fingerprint("hash1"))),
        )
        await db.close()

        async with FingerprintRepository(db_path) as repo:
            entity = await repo.fingerprints.get_by_git_commit_hash("legacy")
            assert entity is not None
            assert entity.platform is None
            await add_artifact(repo, entity.id, "build", "android")
            artifact = await repo.get_first_github_artifact("hash1", "android")

        assert artifact is not None and artifact.artifact_id == "build"


class TestFingerprintState:
    """Tests for fingerprint state files."""

    def test_save_and_load(self, temp_dir: Path) -> None:
        """Test that a saved state file loads back with camelCase keys."""
        path = temp_dir / "nested" / "state.json"
        state = FingerprintState(
            current_fingerprint=make_fingerprint("hash2"),
            current_git_commit_hash="c2",
            previous_fingerprint=make_fingerprint("hash1"),
            previous_git_commit_hash="c1",
            diff=[{"op": "changed", "source": {"type": "file", "filePath": "app.json"}}],
        )

        save_fingerprint_state(path, state)

        raw = json.loads(path.read_text())
        assert raw["currentGitCommitHash"] == "c2"
        assert load_fingerprint_state(path) == state
        assert not state.is_empty_diff


@pytest.fixture
def state_file(temp_dir: Path) -> Path:
    """Write a state file for commit c1 with an empty diff."""
    path = temp_dir / "state.json"
    save_fingerprint_state(
        path,
        FingerprintState(current_fingerprint=make_fingerprint("hash1"), current_git_commit_hash="c1"),
    )
    return path


class TestCli:
    """Tests for the command line interface."""

    def invoke(self, temp_dir: Path, *args: str):
        runner = CliRunner()
        return runner.invoke(app, ["--db", str(temp_dir / "fingerprint.db"), *args])

    def test_init(self, temp_dir: Path) -> None:
        """Test that init creates the database file."""
        result = self.invoke(temp_dir, "init")

        assert result.exit_code == 0, result.output
        assert (temp_dir / "fingerprint.db").exists()

    def test_query_artifact_miss(self, temp_dir: Path, state_file: Path) -> None:
        """Test that a miss prints empty outputs."""
        result = self.invoke(
            temp_dir, "query-artifact", "--state-file", str(state_file), "--platform", "ios", "--json"
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"artifact-id": "", "artifact-url": "", "run-id": ""}

    def test_update_then_query_artifact(self, temp_dir: Path, state_file: Path) -> None:
        """Test that an updated artifact is found by a later query."""
        result = self.invoke(
            temp_dir,
            "update-artifact",
            "--state-file",
            str(state_file),
            "--platform",
            "ios",
            "--artifact-id",
            "123",
            "--artifact-url",
            "https://example.com/123",
            "--artifact-digest",
            "sha256:abc",
            "--run-id",
            "77",
        )
        assert result.exit_code == 0, result.output

        result = self.invoke(
            temp_dir, "query-artifact", "--state-file", str(state_file), "--platform", "ios", "--json"
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "artifact-id": "123",
            "artifact-url": "https://example.com/123",
            "run-id": "77",
        }

    def test_record_and_show(self, temp_dir: Path, state_file: Path) -> None:
        """Test that a recorded fingerprint is shown as JSON."""
        result = self.invoke(temp_dir, "record", str(state_file), "--platform", "android")
        assert result.exit_code == 0, result.output

        result = self.invoke(temp_dir, "show", "c1", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["fingerprint_hash"] == "hash1"
        assert data["platform"] == "android"
        assert data["artifacts"] == []

    def test_stats_json(self, temp_dir: Path, state_file: Path) -> None:
        """Test that stats reports counts as JSON."""
        self.invoke(temp_dir, "record", str(state_file))

        result = self.invoke(temp_dir, "stats", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["fingerprints"] == 1
        assert data["artifacts"] == 0
        assert data["schema_version"] == CURRENT_SCHEMA_VERSION

    def test_missing_state_file_exits_with_error(self, temp_dir: Path) -> None:
        """Test that a missing state file is reported, not raised."""
        result = self.invoke(
            temp_dir,
            "query-artifact",
            "--state-file",
            str(temp_dir / "missing.json"),
            "--platform",
            "ios",
        )

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_update_artifact_with_markup_in_values(self, temp_dir: Path, state_file: Path) -> None:
        """Test that bracketed values are printed literally and stored unchanged."""
        url = "https://example.com/[/]"
        result = self.invoke(
            temp_dir,
            "update-artifact",
            "--state-file",
            str(state_file),
            "--platform",
            "ios",
            "--artifact-id",
            "[bold]123",
            "--artifact-url",
            url,
            "--artifact-digest",
            "sha256:abc",
            "--run-id",
            "77",
        )
        assert result.exit_code == 0, result.output
        assert url in result.output

        result = self.invoke(temp_dir, "show", "c1")
        assert result.exit_code == 0, result.output
        assert "[bold]123" in result.output

        result = self.invoke(temp_dir, "show", "c1", "--json")
        assert result.exit_code == 0, result.output
        artifacts = json.loads(result.stdout)["artifacts"]
        assert len(artifacts) == 1
        assert artifacts[0]["artifact_url"] == url

    def test_record_with_markup_in_platform(self, temp_dir: Path, state_file: Path) -> None:
        """Test that show prints a bracketed platform literally."""
        result = self.invoke(temp_dir, "record", str(state_file), "--platform", "[red]")
        assert result.exit_code == 0, result.output

        result = self.invoke(temp_dir, "show", "c1")

        assert result.exit_code == 0, result.output
        assert "[red]" in result.output

    def test_state_without_fingerprint_hash_exits_with_error(self, temp_dir: Path) -> None:
        """Test that a state file lacking the fingerprint hash is reported."""
        path = temp_dir / "state.json"
        path.write_text(
            json.dumps({"currentFingerprint": {"sources": []}, "currentGitCommitHash": "c1"})
        )

        result = self.invoke(temp_dir, "record", str(path))

        assert result.exit_code == 1
        assert "hash" in result.output
