"""Input file helpers shared by the review consolidation scripts.

All loaders raise InputError with a message that names the offending file, so
scripts can turn any bad input into a single stderr line and exit code 2.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pkg.reviewcore import (
    ChangedFile,
    ExistingFindingCandidate,
    FeedbackPolicy,
    FindingValidationError,
    RunSummary,
)


class InputError(RuntimeError):
    """Raised for unreadable or malformed script inputs."""


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"unable to read {path}: {exc}") from exc


def read_json(path: Path) -> Any:
    raw = read_text(path)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InputError(f"invalid JSON in {path}: {exc}") from exc


def read_review(path: Path) -> tuple[list[Any], RunSummary | None]:
    """Read an LLM review document.

    Accepts either a bare list of findings or an object with "comments" and an
    optional "summary". Individual findings are left raw; refinement decides
    what to do with malformed ones.
    """
    data = read_json(path)
    if isinstance(data, list):
        return data, None
    if not isinstance(data, dict):
        raise InputError(f"{path}: root must be a list or an object")
    comments = data.get("comments", [])
    if not isinstance(comments, list):
        raise InputError(f"{path}: comments must be a list")
    summary = None
    if data.get("summary") is not None:
        try:
            summary = RunSummary.from_dict(data["summary"])
        except ValueError as exc:
            raise InputError(f"{path}: {exc}") from exc
    return comments, summary


def read_changed_files(path: Path | None) -> list[ChangedFile]:
    if path is None:
        return []
    data = read_json(path)
    if not isinstance(data, list):
        raise InputError(f"{path}: root must be a list")
    try:
        return [ChangedFile.from_dict(item) for item in data]
    except ValueError as exc:
        raise InputError(f"{path}: {exc}") from exc


def read_feedback_policy(path: Path | None) -> FeedbackPolicy:
    if path is None:
        return FeedbackPolicy()
    try:
        return FeedbackPolicy.from_dict(read_json(path))
    except ValueError as exc:
        raise InputError(f"{path}: {exc}") from exc


def read_existing_findings(path: Path) -> list[ExistingFindingCandidate]:
    data = read_json(path)
    if not isinstance(data, list):
        raise InputError(f"{path}: root must be a list")
    try:
        return [ExistingFindingCandidate.from_dict(item) for item in data]
    except FindingValidationError as exc:
        raise InputError(f"{path}: {exc}") from exc


def write_json(data: Any, output: Path | None) -> None:
    text = json.dumps(data, indent=2, sort_keys=False)
    if output is None:
        print(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
