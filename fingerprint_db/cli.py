"""CLI entry point for Fingerprint DB."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from fingerprint_db.core.exceptions import FingerprintDbError
from fingerprint_db.core.models import GitHubArtifact
from fingerprint_db.core.state import FingerprintState, load_fingerprint_state
from fingerprint_db.core.storage import FingerprintRepository, get_default_db_path

app = typer.Typer(
    name="fingerprint-db",
    help="Fingerprint-keyed build artifact cache.",
    no_args_is_help=True,
)
console = Console()

T = TypeVar("T")


@dataclass
class Settings:
    db_path: Path


def run_with_repo(ctx: typer.Context, action: Callable[[FingerprintRepository], Awaitable[T]]) -> T:
    """Open the repository, run ``action`` and always close it."""
    settings: Settings = ctx.obj

    async def runner() -> T:
        async with FingerprintRepository(settings.db_path) as repo:
            return await action(repo)

    try:
        return asyncio.run(runner())
    except FingerprintDbError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


def read_state(state_file: Path) -> FingerprintState:
    try:
        return load_fingerprint_state(state_file)
    except FingerprintDbError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


def format_artifact(artifact: GitHubArtifact) -> str:
    return (
        f"[cyan]{escape(artifact.artifact_id)}[/cyan] ({escape(artifact.platform)})\n"
        f"  url: {escape(artifact.artifact_url)}\n"
        f"  digest: [dim]{escape(artifact.artifact_digest)}[/]\n"
        f"  run: {escape(artifact.workflow_run_id)}"
    )


@app.callback()
def main(
    ctx: typer.Context,
    db: Annotated[
        Path | None,
        typer.Option("--db", envvar="FINGERPRINT_DB_PATH", help="Path to the database file"),
    ] = None,
    cache_dir: Annotated[
        Path,
        typer.Option(
            "--cache-dir", envvar="RUNNER_TOOL_CACHE", help="Directory holding fingerprint-storage/"
        ),
    ] = Path("."),
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Fingerprint-keyed build artifact cache."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.obj = Settings(db_path=db if db is not None else get_default_db_path(cache_dir))


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the database or migrate it to the current schema."""
    result = run_with_repo(ctx, lambda repo: repo.get_stats())
    console.print(f"[green]Ready:[/green] {escape(str(ctx.obj.db_path))}")
    console.print(f"  Schema version: {result.schema_version}")


@app.command()
def stats(
    ctx: typer.Context,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show database statistics."""
    result = run_with_repo(ctx, lambda repo: repo.get_stats())

    if output_json:
        print(json.dumps(result.to_dict()))
    else:
        console.print(f"Schema version: {result.schema_version}")
        console.print(f"Fingerprints: {result.fingerprints}")
        console.print(f"Artifacts: {result.artifacts}")
        if result.last_updated:
            console.print(f"Last updated: {result.last_updated}")


@app.command()
def show(
    ctx: typer.Context,
    git_commit_hash: Annotated[str, typer.Argument(help="Git commit hash")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the fingerprint and artifacts recorded for a commit."""

    async def action(repo: FingerprintRepository):
        entity = await repo.fingerprints.get_by_git_commit_hash(git_commit_hash)
        if entity is None:
            return None, []
        return entity, await repo.artifacts.get_by_fingerprint_id(entity.id)

    entity, artifacts = run_with_repo(ctx, action)

    if output_json:
        if entity is None:
            print(json.dumps(None))
            return
        result = entity.to_dict()
        result["artifacts"] = [a.to_dict() for a in artifacts]
        print(json.dumps(result))
        return

    if entity is None:
        console.print(f"No fingerprint for '[cyan]{escape(git_commit_hash)}[/cyan]'")
        return
    console.print(f"[bold cyan]{escape(entity.git_commit_hash)}[/]")
    console.print(f"  hash: {escape(entity.fingerprint_hash)}")
    platform = escape(entity.platform) if entity.platform else "[dim]any[/]"
    console.print(f"  platform: {platform}")
    if entity.eas_build_id:
        console.print(f"  eas build: {escape(entity.eas_build_id)}")
    console.print(f"  sources: {len(entity.sources)}")
    console.print(f"  updated: [dim]{entity.updated_at}[/]")
    if not artifacts:
        console.print("  [dim]No artifacts recorded[/]")
    for artifact in artifacts:
        console.print(format_artifact(artifact))


@app.command()
def record(
    ctx: typer.Context,
    state_file: Annotated[Path, typer.Argument(help="Fingerprint state file")],
    platform: Annotated[str | None, typer.Option("--platform", "-p", help="Platform")] = None,
    eas_build_id: Annotated[
        str | None, typer.Option("--eas-build-id", help="EAS build id for this fingerprint")
    ] = None,
) -> None:
    """Record the current fingerprint from a state file."""
    state = read_state(state_file)

    run_with_repo(
        ctx,
        lambda repo: repo.fingerprints.upsert_by_git_commit_hash(
            state.current_git_commit_hash,
            state.current_fingerprint,
            eas_build_id=eas_build_id,
            platform=platform,
        ),
    )
    console.print(
        f"[green]Recorded[/green] {escape(state.current_fingerprint['hash'])} "
        f"for [cyan]{escape(state.current_git_commit_hash)}[/cyan]"
    )


@app.command("query-artifact")
def query_artifact(
    ctx: typer.Context,
    state_file: Annotated[Path, typer.Option("--state-file", help="Fingerprint state file")],
    platform: Annotated[str, typer.Option("--platform", "-p", help="Platform")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Find a reusable build artifact for the current fingerprint."""
    state = read_state(state_file)

    artifact = run_with_repo(
        ctx,
        lambda repo: repo.query_reusable_artifact(
            state.current_fingerprint["hash"], platform, state.is_empty_diff
        ),
    )

    if output_json:
        print(
            json.dumps(
                {
                    "artifact-id": artifact.artifact_id if artifact else "",
                    "artifact-url": artifact.artifact_url if artifact else "",
                    "run-id": artifact.workflow_run_id if artifact else "",
                }
            )
        )
    elif artifact is None:
        console.print("No reusable artifact, a new build is required")
    else:
        console.print(format_artifact(artifact))


@app.command("update-artifact")
def update_artifact(
    ctx: typer.Context,
    state_file: Annotated[Path, typer.Option("--state-file", help="Fingerprint state file")],
    platform: Annotated[str, typer.Option("--platform", "-p", help="Platform")],
    artifact_id: Annotated[str, typer.Option("--artifact-id", help="Artifact id")],
    artifact_url: Annotated[str, typer.Option("--artifact-url", help="Artifact URL")],
    artifact_digest: Annotated[str, typer.Option("--artifact-digest", help="Artifact digest")],
    run_id: Annotated[
        str, typer.Option("--run-id", envvar="GITHUB_RUN_ID", help="Workflow run id")
    ],
) -> None:
    """Attach a finished build artifact to the current fingerprint."""
    state = read_state(state_file)

    artifact = run_with_repo(
        ctx,
        lambda repo: repo.record_github_artifact(
            state.current_git_commit_hash,
            state.current_fingerprint,
            platform=platform,
            artifact_id=artifact_id,
            artifact_url=artifact_url,
            artifact_digest=artifact_digest,
            workflow_run_id=run_id,
        ),
    )
    console.print("[green]Done![/green]")
    console.print(format_artifact(artifact))


if __name__ == "__main__":
    app()
