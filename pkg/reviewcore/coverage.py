"""Coverage planning: find changed files the first review pass neglected."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .diff import normalize_path
from .models import INLINE, ChangedFile, Finding, coerce_changed_file

logger = logging.getLogger(__name__)

HIGH_CHURN_LINES = 250
MEDIUM_CHURN_LINES = 80
MIN_COVERAGE_RATIO = 0.75
DEFAULT_MAX_TARGETS = 8

_RISK_RANK = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class CoverageTarget:
    path: str
    risk: str
    reason: str
    additions: int | None = None
    deletions: int | None = None


@dataclass(frozen=True)
class CoverageStats:
    total_changed: int = 0
    covered_changed: int = 0
    uncovered_changed: int = 0
    coverage_ratio: float = 1.0
    findings_on_changed: int = 0
    min_expected_findings: int = 0


@dataclass(frozen=True)
class CoveragePlan:
    should_run: bool
    targets: list[CoverageTarget] = field(default_factory=list)
    stats: CoverageStats = field(default_factory=CoverageStats)
    risk_by_path: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldRun": self.should_run,
            "targets": [
                {
                    "path": t.path,
                    "risk": t.risk,
                    "reason": t.reason,
                    "additions": t.additions,
                    "deletions": t.deletions,
                }
                for t in self.targets
            ],
            "stats": {
                "totalChanged": self.stats.total_changed,
                "coveredChanged": self.stats.covered_changed,
                "uncoveredChanged": self.stats.uncovered_changed,
                "coverageRatio": self.stats.coverage_ratio,
                "findingsOnChanged": self.stats.findings_on_changed,
                "minExpectedFindings": self.stats.min_expected_findings,
            },
            "riskByPath": dict(self.risk_by_path),
        }


def risk_for_churn(churn: int) -> str:
    if churn >= HIGH_CHURN_LINES:
        return "high"
    if churn >= MEDIUM_CHURN_LINES:
        return "medium"
    return "low"


def risk_rank(risk: str) -> int:
    return _RISK_RANK.get(risk, 1)


def counts_as_coverage(finding: Finding) -> bool:
    """Inline findings count, except style nits and low-confidence nits."""
    if finding.comment_type != INLINE:
        return False
    if finding.severity == "nit" and (finding.category == "style" or finding.confidence == "low"):
        return False
    return True


def _target_reason(risk: str, churn: int) -> str:
    if risk == "high":
        return f"high churn ({churn} lines changed)"
    if risk == "medium":
        return f"medium churn ({churn} lines changed)"
    if churn > 0:
        return f"uncovered changed file ({churn} lines changed)"
    return "uncovered changed file"


def _collect_changed(changed_files: Iterable[ChangedFile | dict[str, Any]]) -> dict[str, ChangedFile]:
    by_path: dict[str, ChangedFile] = {}
    for raw in changed_files:
        file = coerce_changed_file(raw)
        path = normalize_path(file.path)
        if not path:
            continue
        existing = by_path.get(path)
        additions = file.additions if file.additions is not None else (existing.additions if existing else None)
        deletions = file.deletions if file.deletions is not None else (existing.deletions if existing else None)
        supplied_risk = file.risk or (existing.risk if existing else None)
        by_path[path] = ChangedFile(
            path=path,
            additions=additions,
            deletions=deletions,
            risk=supplied_risk,
            status=file.status or (existing.status if existing else None),
        )
    return by_path


def build_coverage_plan(
    changed_files: Iterable[ChangedFile | dict[str, Any]],
    findings: Iterable[Finding],
    *,
    max_targets: int = DEFAULT_MAX_TARGETS,
) -> CoveragePlan:
    """Decide whether a supplemental pass should run and which files it targets.

    A supplied risk on a changed file is authoritative; otherwise the tier is
    derived from churn.
    """
    changed = _collect_changed(changed_files)
    if not changed:
        return CoveragePlan(should_run=False)

    risk_by_path = {path: file.risk or risk_for_churn(file.churn) for path, file in changed.items()}

    covered: set[str] = set()
    findings_on_changed = 0
    for finding in findings:
        if not counts_as_coverage(finding):
            continue
        path = normalize_path(finding.path)
        if path not in changed:
            continue
        findings_on_changed += 1
        covered.add(path)

    total = len(changed)
    uncovered = [path for path in changed if path not in covered]
    coverage_ratio = len(covered) / total
    min_expected = max(2, min(6, math.ceil(total * 0.5)))
    should_run = (
        total >= 2
        and len(uncovered) > 0
        and (coverage_ratio < MIN_COVERAGE_RATIO or findings_on_changed < min_expected)
    )

    def score(path: str) -> int:
        return risk_rank(risk_by_path[path]) * 100 + min(99, changed[path].churn)

    limit = max(2, min(16, max_targets))
    ordered = sorted(uncovered, key=lambda path: (-score(path), path))[:limit]
    targets = [
        CoverageTarget(
            path=path,
            risk=risk_by_path[path],
            reason=_target_reason(risk_by_path[path], changed[path].churn),
            additions=changed[path].additions,
            deletions=changed[path].deletions,
        )
        for path in ordered
    ]

    stats = CoverageStats(
        total_changed=total,
        covered_changed=len(covered),
        uncovered_changed=len(uncovered),
        coverage_ratio=coverage_ratio,
        findings_on_changed=findings_on_changed,
        min_expected_findings=min_expected,
    )
    logger.debug("coverage plan: should_run=%s stats=%s", should_run, stats)
    return CoveragePlan(should_run=should_run, targets=targets, stats=stats, risk_by_path=risk_by_path)
