"""Text canonicalization and identity defaults for raw review findings."""

from __future__ import annotations

import re
from dataclasses import replace

from .diff import normalize_path
from .fingerprint import default_comment_id, default_comment_key
from .models import Finding

PLACEHOLDER_VALUES = frozenset({"", '""', "''", "n/a", "none", "(none)"})

_TRAILING_SPACE_RE = re.compile(r"\s+\n")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize_whitespace(value: str) -> str:
    text = (value or "").replace("\r\n", "\n")
    return _TRAILING_SPACE_RE.sub("\n", text).strip()


def normalize_single_line(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", normalize_whitespace(value))


def normalize_title_key(value: str) -> str:
    """Lower-case alphanumeric rendering of a title, used for grouping."""
    return _NON_ALNUM_RE.sub(" ", normalize_single_line(value).lower()).strip()


def is_meaningful(value: str) -> bool:
    return normalize_whitespace(value).lower() not in PLACEHOLDER_VALUES


def is_meaningful_finding(finding: Finding) -> bool:
    return is_meaningful(finding.title) and is_meaningful(finding.body) and is_meaningful(finding.evidence)


def _normalize_patch(value: str | None) -> str | None:
    if not value:
        return None
    normalized = normalize_whitespace(value)
    return normalized or None


def normalize_finding(finding: Finding) -> Finding:
    """Return a canonical copy: clean text, normalized path, ids filled in."""
    normalized = replace(
        finding,
        path=normalize_path(finding.path),
        title=normalize_single_line(finding.title),
        body=normalize_whitespace(finding.body),
        evidence=normalize_whitespace(finding.evidence),
        suggested_patch=_normalize_patch(finding.suggested_patch),
        id=normalize_single_line(finding.id),
        key=normalize_single_line(finding.key),
    )
    if not normalized.id:
        normalized = replace(normalized, id=default_comment_id(normalized))
    if not normalized.key:
        normalized = replace(normalized, key=default_comment_key(normalized))
    return normalized
