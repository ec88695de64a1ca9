"""Merge a supplemental review pass into the base pass.

The duplicate filter here is looser than the one used during refinement:
a supplemental finding is a duplicate when the base already says the same
thing about the same file within a few lines, even if the exact line moved.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from .coverage import risk_rank
from .diff import normalize_path
from .fingerprint import suffix_collisions
from .models import FileBreakdown, Finding, FindingValidationError, RunSummary, coerce_finding
from .normalize import normalize_finding

logger = logging.getLogger(__name__)

NEARBY_LINE_WINDOW = 8

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class MergeResult:
    findings: list[Finding]
    added: int
    dropped_duplicates: int
    dropped_low_value: int
    dropped_invalid: int = 0

    def counts(self) -> dict[str, int]:
        return {
            "added": self.added,
            "droppedDuplicates": self.dropped_duplicates,
            "droppedLowValue": self.dropped_low_value,
            "droppedInvalid": self.dropped_invalid,
        }


def _normalize_title(value: str) -> str:
    return _NON_ALNUM_RE.sub(" ", (value or "").lower()).strip()


def _strict_key(finding: Finding) -> tuple[str, str, int, str, str]:
    return (
        normalize_path(finding.path),
        finding.side,
        finding.line,
        finding.category,
        _normalize_title(finding.title),
    )


def _semantic_key(finding: Finding) -> tuple[str, str, str]:
    return (normalize_path(finding.path), finding.category, _normalize_title(finding.title))


def is_low_value(finding: Finding) -> bool:
    return finding.severity == "nit" and (finding.category == "style" or finding.confidence == "low")


class _DuplicateIndex:
    def __init__(self) -> None:
        self._strict: set[tuple[str, str, int, str, str]] = set()
        self._lines: dict[tuple[str, str, str], list[int]] = {}

    def add(self, finding: Finding) -> None:
        self._strict.add(_strict_key(finding))
        self._lines.setdefault(_semantic_key(finding), []).append(finding.line)

    def is_duplicate(self, finding: Finding) -> bool:
        if _strict_key(finding) in self._strict:
            return True
        lines = self._lines.get(_semantic_key(finding), [])
        return any(abs(line - finding.line) <= NEARBY_LINE_WINDOW for line in lines)


def merge_supplemental_findings(
    base: Iterable[Finding],
    supplemental: Iterable[Finding | dict[str, Any]],
) -> MergeResult:
    """Append supplemental findings the base does not already cover.

    Supplemental records may be raw dicts; they are validated and normalized
    first, and records that fail validation are counted in dropped_invalid.
    """
    merged = list(base)
    index = _DuplicateIndex()
    for finding in merged:
        index.add(finding)

    added = dropped_duplicates = dropped_low_value = dropped_invalid = 0
    for raw in supplemental:
        try:
            finding = normalize_finding(coerce_finding(raw))
        except FindingValidationError as exc:
            logger.debug("dropping malformed supplemental finding: %s", exc)
            dropped_invalid += 1
            continue
        if is_low_value(finding):
            dropped_low_value += 1
            continue
        if index.is_duplicate(finding):
            dropped_duplicates += 1
            continue
        index.add(finding)
        merged.append(finding)
        added += 1

    logger.debug(
        "supplemental merge: added=%d duplicates=%d low_value=%d invalid=%d",
        added,
        dropped_duplicates,
        dropped_low_value,
        dropped_invalid,
    )
    return MergeResult(
        findings=suffix_collisions(merged),
        added=added,
        dropped_duplicates=dropped_duplicates,
        dropped_low_value=dropped_low_value,
        dropped_invalid=dropped_invalid,
    )


def _higher_risk(a: str | None, b: str | None) -> str | None:
    if a and b:
        return b if risk_rank(b) > risk_rank(a) else a
    return a or b


def _union_text(values: Iterable[str], limit: int) -> list[str]:
    out: list[str] = []
    for value in values:
        text = (value or "").strip()
        if text and text not in out:
            out.append(text)
    return out[:limit]


def merge_supplemental_summary(base: RunSummary, supplemental: RunSummary, *, max_key_concerns: int = 5) -> RunSummary:
    """Combine two run summaries conservatively.

    Risk goes up, confidence goes down, list fields are unioned and capped,
    and per-file entries keep the longer summary and the higher risk.
    """
    if base.confidence is not None and supplemental.confidence is not None:
        confidence = min(base.confidence, supplemental.confidence)
    else:
        confidence = base.confidence if base.confidence is not None else supplemental.confidence

    by_path: dict[str, FileBreakdown] = {}
    for entry in base.file_breakdown:
        by_path[normalize_path(entry.path)] = entry
    for entry in supplemental.file_breakdown:
        key = normalize_path(entry.path)
        existing = by_path.get(key)
        if existing is None:
            by_path[key] = entry
            continue
        by_path[key] = FileBreakdown(
            path=existing.path,
            summary=existing.summary if len(existing.summary) >= len(entry.summary) else entry.summary,
            risk=_higher_risk(existing.risk, entry.risk),
        )

    return replace(
        base,
        risk=_higher_risk(base.risk, supplemental.risk) or base.risk,
        confidence=confidence,
        key_concerns=_union_text([*base.key_concerns, *supplemental.key_concerns], max(1, max_key_concerns)),
        what_to_test=_union_text([*base.what_to_test, *supplemental.what_to_test], max(4, max_key_concerns * 2)),
        file_breakdown=list(by_path.values()),
        diagram_mermaid=base.diagram_mermaid or supplemental.diagram_mermaid,
    )
