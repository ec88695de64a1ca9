"""Quality refinement: score, dedupe and cap a batch of LLM findings.

Every input record ends up in exactly one place: the output list or one of
the drop counters (droppedIgnored, droppedEmpty, deduplicated,
droppedPerFileCap). Severity downgrades and summary conversions are counted
separately and never drop anything.
"""

from __future__ import annotations

import fnmatch
import logging
import math
from collections.abc import Iterable
from dataclasses import asdict, dataclass, replace
from typing import Any

from .config import ScoringWeights
from .diff import DiffIndex, is_line_in_diff, normalize_path
from .fingerprint import suffix_collisions
from .models import (
    INLINE,
    SUMMARY,
    ChangedFile,
    FeedbackPolicy,
    Finding,
    FindingValidationError,
    coerce_changed_file,
    coerce_finding,
)
from .normalize import is_meaningful_finding, normalize_finding, normalize_title_key

logger = logging.getLogger(__name__)


@dataclass
class QualityDiagnostics:
    dropped_ignored: int = 0
    dropped_empty: int = 0
    deduplicated: int = 0
    converted_to_summary: int = 0
    downgraded_blocking: int = 0
    dropped_per_file_cap: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "droppedIgnored": self.dropped_ignored,
            "droppedEmpty": self.dropped_empty,
            "deduplicated": self.deduplicated,
            "convertedToSummary": self.converted_to_summary,
            "downgradedBlocking": self.downgraded_blocking,
            "droppedPerFileCap": self.dropped_per_file_cap,
        }


@dataclass(frozen=True)
class RefineResult:
    findings: list[Finding]
    diagnostics: QualityDiagnostics


@dataclass(frozen=True)
class _Ranked:
    finding: Finding
    score: float


def max_inline_per_file(max_inline_comments: int) -> int:
    return max(2, min(6, math.ceil(max_inline_comments / 3)))


def is_ignored_path(path: str, globs: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(path, pattern) for pattern in globs)


def priority_score(
    finding: Finding,
    *,
    in_diff: bool,
    in_changed_path: bool,
    feedback_policy: FeedbackPolicy,
    weights: ScoringWeights,
) -> float:
    confidence = (
        weights.confidence.get(finding.confidence, weights.default_confidence)
        if finding.confidence
        else weights.default_confidence
    )
    score = weights.severity.get(finding.severity, 0) * confidence
    score += weights.category.get(finding.category, 0)
    if finding.suggested_patch:
        score += weights.suggestion_boost
    score += min(weights.evidence_boost_cap, len(finding.evidence) // weights.evidence_chars_per_point)
    if in_diff:
        score += weights.in_diff_boost
    if in_changed_path:
        score += weights.changed_path_boost
    if finding.category in feedback_policy.positive_categories:
        score += weights.feedback_boost
    if finding.category in feedback_policy.negative_categories:
        score -= weights.feedback_penalty
    return score


def _dedupe_key(finding: Finding) -> tuple[Any, ...]:
    return (
        normalize_path(finding.path),
        finding.side,
        finding.line,
        finding.category,
        normalize_title_key(finding.title),
        finding.comment_type,
    )


def _keep_strongest(items: list[_Ranked]) -> tuple[list[_Ranked], int]:
    by_key: dict[tuple[Any, ...], _Ranked] = {}
    dropped = 0
    for item in items:
        key = _dedupe_key(item.finding)
        existing = by_key.get(key)
        if existing is not None:
            dropped += 1
            if item.score <= existing.score:
                continue
        by_key[key] = item
    return list(by_key.values()), dropped


def _changed_path_set(changed_files: Iterable[ChangedFile | dict[str, Any]]) -> set[str]:
    paths = set()
    for file in changed_files:
        path = normalize_path(coerce_changed_file(file).path)
        if path:
            paths.add(path)
    return paths


def refine_findings(
    findings: Iterable[Finding | dict[str, Any]],
    diff_index: DiffIndex,
    changed_files: Iterable[ChangedFile | dict[str, Any]] = (),
    *,
    max_inline_comments: int = 20,
    summary_only: bool = False,
    allowed_types: Iterable[str] | None = None,
    feedback_policy: FeedbackPolicy | None = None,
    weights: ScoringWeights | None = None,
    ignore: Iterable[str] = (),
) -> RefineResult:
    """Turn raw candidate findings into the final ordered comment set.

    Args:
        findings: Finding objects or raw dict records from the LLM stage.
            Records that fail validation are counted as droppedEmpty.
        diff_index: Index of the diff the findings were produced against.
        changed_files: Changed-file records (only their paths are used here).
        max_inline_comments: Configured inline limit; drives the per-file cap.
        summary_only: Force every finding to a summary comment.
        allowed_types: Comment types allowed by the output mode; inline
            findings become summaries when "inline" is not allowed.
        feedback_policy: Category boosts/penalties from reviewer feedback.
        weights: Scoring weights; defaults to ScoringWeights().
        ignore: Path globs; findings on matching paths are counted in
            droppedIgnored.
    """
    weights = weights or ScoringWeights()
    policy = feedback_policy or FeedbackPolicy()
    diagnostics = QualityDiagnostics()
    changed_paths = _changed_path_set(changed_files)
    allowed_inline = INLINE in allowed_types if allowed_types is not None else True
    force_summary = bool(summary_only) or not allowed_inline
    ignore_globs = tuple(ignore)

    ranked: list[_Ranked] = []
    for raw in findings:
        try:
            finding = normalize_finding(coerce_finding(raw))
        except FindingValidationError as exc:
            logger.debug("dropping malformed finding: %s", exc)
            diagnostics.dropped_empty += 1
            continue

        if is_ignored_path(finding.path, ignore_globs):
            diagnostics.dropped_ignored += 1
            continue

        if not is_meaningful_finding(finding):
            diagnostics.dropped_empty += 1
            continue

        if finding.category == "style" and finding.severity != "nit":
            finding = replace(finding, severity="nit")
        if finding.severity == "blocking" and not finding.suggested_patch:
            finding = replace(finding, severity="important")
            diagnostics.downgraded_blocking += 1

        in_diff = is_line_in_diff(diff_index, finding)
        if not finding.is_summary and (force_summary or not in_diff):
            finding = replace(finding, comment_type=SUMMARY)
            diagnostics.converted_to_summary += 1

        score = priority_score(
            finding,
            in_diff=in_diff,
            in_changed_path=finding.path in changed_paths,
            feedback_policy=policy,
            weights=weights,
        )
        ranked.append(_Ranked(finding=finding, score=score))

    kept, diagnostics.deduplicated = _keep_strongest(ranked)

    per_file = max_inline_per_file(max_inline_comments)
    inline_by_path: dict[str, int] = {}
    capped: list[_Ranked] = []
    for item in sorted(kept, key=lambda r: -r.score):
        if force_summary or item.finding.is_summary:
            capped.append(item)
            continue
        count = inline_by_path.get(item.finding.path, 0)
        if count >= per_file:
            diagnostics.dropped_per_file_cap += 1
            continue
        inline_by_path[item.finding.path] = count + 1
        capped.append(item)

    capped.sort(key=lambda r: (-r.score, r.finding.path, r.finding.line))
    refined = suffix_collisions(item.finding for item in capped)

    logger.debug("refined %d findings: %s", len(refined), asdict(diagnostics))
    return RefineResult(findings=refined, diagnostics=diagnostics)
