"""Build changed-file records from `git diff --name-status` / `--numstat` output."""

from __future__ import annotations

from .models import ChangedFile

_STATUS_BY_CODE = {
    "A": "added",
    "M": "modified",
    "D": "removed",
    "R": "renamed",
    "C": "copied",
    "T": "changed",
    "U": "modified",
}


def normalize_git_status(value: str) -> str:
    code = (value or "").strip().upper()
    if not code:
        return "modified"
    return _STATUS_BY_CODE.get(code[0], code)


def _parse_count(value: str) -> int | None:
    # Binary files report "-" instead of a count.
    try:
        return int(value)
    except ValueError:
        return None


def parse_git_changed_files(name_status: str, numstat: str) -> list[ChangedFile]:
    """Merge name-status and numstat listings, keyed by (destination) path."""
    by_path: dict[str, ChangedFile] = {}

    for line in (name_status or "").splitlines():
        parts = line.strip().split("\t")
        if len(parts) < 2:
            continue
        path = parts[-1].strip()
        if not path:
            continue
        by_path[path] = ChangedFile(path=path, status=normalize_git_status(parts[0]))

    for line in (numstat or "").splitlines():
        parts = line.strip().split("\t")
        if len(parts) < 3:
            continue
        path = parts[-1].strip()
        if not path:
            continue
        existing = by_path.get(path)
        by_path[path] = ChangedFile(
            path=path,
            additions=_parse_count(parts[0]),
            deletions=_parse_count(parts[1]),
            status=existing.status if existing else None,
        )

    return list(by_path.values())
