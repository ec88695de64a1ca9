"""Match new findings against findings posted by an earlier run.

Re-reviews should update the thread that already discusses an issue rather
than open a second one. Matching runs per pull request, sequentially: once an
existing finding is claimed by one new finding no later finding can take it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from .diff import DiffIndex, context_hash_for_comment, hunk_hash_for_comment, normalize_path
from .fingerprint import fingerprint_for, match_key_for, match_key_from_parts
from .models import ExistingFindingCandidate, Finding

logger = logging.getLogger(__name__)

NOISE_TOKENS = frozenset(
    {
        "the",
        "and",
        "for",
        "with",
        "from",
        "that",
        "this",
        "have",
        "has",
        "into",
        "when",
        "where",
        "should",
        "could",
        "would",
        "runs",
        "run",
    }
)

MIN_MATCH_SCORE = 0.5
STRONG_TITLE_SCORE = 0.5
CLOSE_TITLE_SCORE = 0.34
CLOSE_LINE_DISTANCE = 8

_ESCAPED_NEWLINE_RE = re.compile(r"\\+n")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

C = TypeVar("C", bound=ExistingFindingCandidate)


def tokenize(value: str) -> set[str]:
    text = _ESCAPED_NEWLINE_RE.sub(" ", (value or "").lower())
    text = _NON_ALNUM_RE.sub(" ", text).strip()
    return {token for token in text.split() if len(token) >= 3 and token not in NOISE_TOKENS}


def jaccard(left: set[str], right: set[str]) -> float:
    if not left or not right:
        return 0.0
    overlap = len(left & right)
    return overlap / (len(left) + len(right) - overlap)


def line_proximity_score(distance: int) -> float:
    if distance <= 2:
        return 1.0
    if distance <= 6:
        return 0.9
    if distance <= 12:
        return 0.75
    if distance <= 25:
        return 0.55
    return 0.3


def select_semantic_candidate(
    finding: Finding,
    candidates: Iterable[C],
    claimed_ids: set[int | str] | None = None,
) -> C | None:
    """Return the existing candidate that best restates this finding, if any."""
    claimed = claimed_ids or set()
    path = normalize_path(finding.path)
    title_tokens = tokenize(finding.title)
    body_tokens = tokenize(finding.body)

    best: C | None = None
    best_score = 0.0
    for candidate in candidates:
        if candidate.id in claimed:
            continue
        if normalize_path(candidate.path) != path or candidate.category != finding.category:
            continue

        title_score = jaccard(title_tokens, tokenize(candidate.title))
        if title_score <= 0:
            continue
        distance = abs(candidate.line - finding.line)
        if not (
            title_score >= STRONG_TITLE_SCORE
            or (title_score >= CLOSE_TITLE_SCORE and distance <= CLOSE_LINE_DISTANCE)
        ):
            continue

        score = (
            title_score * 0.64
            + jaccard(body_tokens, tokenize(candidate.body)) * 0.16
            + line_proximity_score(distance) * 0.14
            + (1.0 if candidate.side == finding.side else 0.7) * 0.04
            + (1.0 if candidate.severity == finding.severity else 0.7) * 0.02
        )
        if score <= best_score:
            continue
        best = candidate
        best_score = score

    if best is None or best_score < MIN_MATCH_SCORE:
        return None
    return best


@dataclass(frozen=True)
class FindingMatch:
    """Identity hashes for one new finding and the prior finding it updates, if any."""

    finding: Finding
    fingerprint: str
    hunk_hash: str
    context_hash: str
    match_key: str
    existing: ExistingFindingCandidate | None = None
    method: str | None = None

    @property
    def is_new(self) -> bool:
        return self.existing is None


@dataclass(frozen=True)
class Reconciliation:
    matches: list[FindingMatch] = field(default_factory=list)
    fixed: list[ExistingFindingCandidate] = field(default_factory=list)
    obsolete: list[ExistingFindingCandidate] = field(default_factory=list)


def _stored_match_key(candidate: ExistingFindingCandidate) -> str | None:
    if not candidate.fingerprint:
        return None
    return match_key_from_parts(candidate.fingerprint, candidate.path, candidate.hunk_hash or "", candidate.title)


def reconcile_findings(
    findings: Iterable[Finding],
    existing: Sequence[ExistingFindingCandidate],
    diff_index: DiffIndex,
) -> Reconciliation:
    """Classify each finding as an update of a prior finding or a new one.

    Prior findings nobody claimed are reported as fixed, or as obsolete when
    their file is no longer part of the diff.
    """
    by_match_key: dict[str, ExistingFindingCandidate] = {}
    for candidate in existing:
        key = _stored_match_key(candidate)
        if key is not None:
            by_match_key.setdefault(key, candidate)

    claimed: set[int | str] = set()
    matches: list[FindingMatch] = []
    for finding in findings:
        hunk_hash = hunk_hash_for_comment(diff_index, finding)
        match_key = match_key_for(finding, hunk_hash)

        method = None
        candidate = by_match_key.get(match_key)
        if candidate is not None and candidate.id not in claimed:
            method = "exact"
        else:
            candidate = select_semantic_candidate(finding, existing, claimed)
            if candidate is not None:
                method = "semantic"
        if candidate is not None:
            claimed.add(candidate.id)
            logger.debug("finding %s matches existing %s (%s)", finding.id, candidate.id, method)

        matches.append(
            FindingMatch(
                finding=finding,
                fingerprint=fingerprint_for(finding),
                hunk_hash=hunk_hash,
                context_hash=context_hash_for_comment(diff_index, finding),
                match_key=match_key,
                existing=candidate,
                method=method,
            )
        )

    fixed: list[ExistingFindingCandidate] = []
    obsolete: list[ExistingFindingCandidate] = []
    for candidate in existing:
        if candidate.id in claimed:
            continue
        if diff_index.has_path(candidate.path):
            fixed.append(candidate)
        else:
            obsolete.append(candidate)

    return Reconciliation(matches=matches, fixed=fixed, obsolete=obsolete)
