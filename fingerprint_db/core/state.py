"""Fingerprint state file shared between CI steps.

The fingerprint step writes its outputs to a JSON file so later steps (artifact
query, artifact update) can pick them up without passing large values around.
Keys are camelCase to stay compatible with files written by other tools.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fingerprint_db.core.exceptions import StateFileError
from fingerprint_db.core.models import FingerprintPayload


@dataclass
class FingerprintState:
    current_fingerprint: FingerprintPayload
    current_git_commit_hash: str
    previous_fingerprint: FingerprintPayload | None = None
    previous_git_commit_hash: str = ""
    diff: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty_diff(self) -> bool:
        return len(self.diff) == 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FingerprintState:
        try:
            state = cls(
                current_fingerprint=data["currentFingerprint"],
                current_git_commit_hash=data["currentGitCommitHash"],
                previous_fingerprint=data.get("previousFingerprint"),
                previous_git_commit_hash=data.get("previousGitCommitHash") or "",
                diff=data.get("diff") or [],
            )
        except KeyError as e:
            raise StateFileError(f"Fingerprint state is missing required key {e}") from e

        if not isinstance(state.current_git_commit_hash, str):
            raise StateFileError("currentGitCommitHash must be a string")
        fingerprint = state.current_fingerprint
        if not isinstance(fingerprint, dict) or not isinstance(fingerprint.get("hash"), str):
            raise StateFileError("currentFingerprint must be an object with a string \"hash\"")
        return state

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentFingerprint": self.current_fingerprint,
            "previousFingerprint": self.previous_fingerprint,
            "diff": self.diff,
            "currentGitCommitHash": self.current_git_commit_hash,
            "previousGitCommitHash": self.previous_git_commit_hash,
        }


def load_fingerprint_state(path: Path) -> FingerprintState:
    """Load a fingerprint state file written by ``save_fingerprint_state``."""
    if not path.exists():
        raise StateFileError(f"{path} does not exist")
    if not path.is_file():
        raise StateFileError(f"{path} is not a file")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StateFileError(f"{path} is not valid UTF-8 JSON: {e}") from e
    if not isinstance(data, dict):
        raise StateFileError(f"{path} does not contain a JSON object")
    return FingerprintState.from_dict(data)


def save_fingerprint_state(path: Path, state: FingerprintState) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict()), encoding="utf-8")
