"""Unified diff indexing for review comment placement.

Builds a per-file view of a patch: which line numbers appear on each side,
plus content hashes for each hunk and for the few lines around any commented
line. The hashes only depend on hunk content, so they stay stable when the
same hunk moves because of edits elsewhere in the file.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from .models import RIGHT

DEV_NULL = "/dev/null"
CONTEXT_RADIUS = 3

_CHANGE_TYPES = {"+": "add", "-": "del", " ": "normal"}


class DiffParseError(ValueError):
    """Raised when a patch cannot be parsed as a unified diff."""


class Anchored(Protocol):
    path: str
    side: str
    line: int


@dataclass(frozen=True)
class DiffLine:
    line: int
    content: str
    change_type: str


@dataclass(frozen=True)
class HunkInfo:
    hash: str
    right_lines: frozenset[int]
    left_lines: frozenset[int]
    right_changes: tuple[DiffLine, ...]
    left_changes: tuple[DiffLine, ...]

    def lines_for(self, side: str) -> frozenset[int]:
        return self.right_lines if side == RIGHT else self.left_lines

    def changes_for(self, side: str) -> tuple[DiffLine, ...]:
        return self.right_changes if side == RIGHT else self.left_changes


@dataclass(frozen=True)
class FileDiff:
    path: str
    hunks: tuple[HunkInfo, ...]
    right: frozenset[int]
    left: frozenset[int]

    def lines_for(self, side: str) -> frozenset[int]:
        return self.right if side == RIGHT else self.left


@dataclass(frozen=True)
class DiffIndex:
    files: dict[str, FileDiff] = field(default_factory=dict)

    def file_for(self, path: str) -> FileDiff | None:
        return self.files.get(normalize_path(path))

    def has_path(self, path: str) -> bool:
        return normalize_path(path) in self.files


def normalize_path(path: str) -> str:
    """Strip leading "./" and "/" from a repository path."""
    normalized = (path or "").strip()
    while True:
        if normalized.startswith("./"):
            normalized = normalized[2:]
        elif normalized.startswith("/"):
            normalized = normalized[1:]
        else:
            return normalized


def normalize_diff_path(path: str) -> str:
    """Normalize a diff header path, dropping a single git "a/" or "b/" prefix."""
    normalized = normalize_path(path)
    if normalized.startswith("a/") or normalized.startswith("b/"):
        normalized = normalized[2:]
    return normalized


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _signature(changes: Iterable[tuple[str, str]]) -> str:
    return "\n".join(f"{change_type}:{content}" for change_type, content in changes)


def _file_path(patched_file) -> str:
    target = patched_file.target_file
    if not target or target == DEV_NULL:
        return normalize_diff_path(patched_file.source_file or "")
    return normalize_diff_path(target)


def _index_hunk(hunk) -> HunkInfo:
    ordered: list[tuple[str, str]] = []
    right_lines: set[int] = set()
    left_lines: set[int] = set()
    right_changes: list[DiffLine] = []
    left_changes: list[DiffLine] = []

    for line in hunk:
        change_type = _CHANGE_TYPES.get(line.line_type)
        if change_type is None:
            # "\ No newline at end of file" marker.
            continue
        content = line.value.rstrip("\n")
        ordered.append((change_type, content))

        if change_type == "add":
            right_lines.add(line.target_line_no)
            right_changes.append(DiffLine(line.target_line_no, content, change_type))
            continue
        if change_type == "del":
            left_lines.add(line.source_line_no)
            left_changes.append(DiffLine(line.source_line_no, content, change_type))
            continue

        if line.target_line_no is not None:
            right_lines.add(line.target_line_no)
            right_changes.append(DiffLine(line.target_line_no, content, change_type))
        if line.source_line_no is not None:
            left_lines.add(line.source_line_no)
            left_changes.append(DiffLine(line.source_line_no, content, change_type))

    return HunkInfo(
        hash=_sha256(_signature(ordered)),
        right_lines=frozenset(right_lines),
        left_lines=frozenset(left_lines),
        right_changes=tuple(right_changes),
        left_changes=tuple(left_changes),
    )


def build_diff_index(patch: str) -> DiffIndex:
    """Parse a unified diff into a DiffIndex.

    Raises:
        DiffParseError: if the patch text is not a valid unified diff.
    """
    try:
        patch_set = PatchSet(patch or "")
    except UnidiffParseError as exc:
        raise DiffParseError(f"unable to parse diff: {exc}") from exc

    files: dict[str, FileDiff] = {}
    for patched_file in patch_set:
        hunks = tuple(_index_hunk(hunk) for hunk in patched_file)
        right: set[int] = set()
        left: set[int] = set()
        for hunk in hunks:
            right.update(hunk.right_lines)
            left.update(hunk.left_lines)
        path = _file_path(patched_file)
        files[path] = FileDiff(path=path, hunks=hunks, right=frozenset(right), left=frozenset(left))
    return DiffIndex(files=files)


def _hunk_containing(index: DiffIndex, comment: Anchored) -> HunkInfo | None:
    file = index.file_for(comment.path)
    if file is None:
        return None
    for hunk in file.hunks:
        if comment.line in hunk.lines_for(comment.side):
            return hunk
    return None


def is_line_in_diff(index: DiffIndex, comment: Anchored) -> bool:
    file = index.file_for(comment.path)
    if file is None:
        return False
    return comment.line in file.lines_for(comment.side)


def hunk_hash_for_comment(index: DiffIndex, comment: Anchored) -> str:
    """Hash of the hunk containing the comment's line, or "" when none does."""
    hunk = _hunk_containing(index, comment)
    return hunk.hash if hunk is not None else ""


def context_hash_for_comment(index: DiffIndex, comment: Anchored) -> str:
    """Hash of the entries within CONTEXT_RADIUS of the comment's line on its side."""
    hunk = _hunk_containing(index, comment)
    if hunk is None:
        return ""
    changes = sorted(hunk.changes_for(comment.side), key=lambda c: c.line)
    idx = next((i for i, c in enumerate(changes) if c.line == comment.line), -1)
    if idx == -1:
        return ""
    window = changes[max(0, idx - CONTEXT_RADIUS) : idx + CONTEXT_RADIUS + 1]
    return _sha256(_signature((c.change_type, c.content) for c in window))
