"""Typed records exchanged between the review consolidation stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

RIGHT = "RIGHT"
LEFT = "LEFT"
SIDES = (RIGHT, LEFT)

SEVERITIES = ("blocking", "important", "nit")
CATEGORIES = ("bug", "security", "performance", "maintainability", "testing", "style")
CONFIDENCES = ("high", "medium", "low")
RISK_LEVELS = ("low", "medium", "high")

INLINE = "inline"
SUMMARY = "summary"
COMMENT_TYPES = (INLINE, SUMMARY)


class FindingValidationError(ValueError):
    """Raised when a raw finding record cannot be turned into a Finding."""


def _pick(raw: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _coerce_text(value: Any, field_name: str, *, required: bool = True) -> str:
    if value is None:
        if required:
            raise FindingValidationError(f"{field_name} is required")
        return ""
    if not isinstance(value, str):
        raise FindingValidationError(f"{field_name} must be a string")
    return value


def _coerce_choice(value: Any, field_name: str, choices: tuple[str, ...]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise FindingValidationError(f"{field_name} is required")
    normalized = value.strip().lower()
    if normalized not in choices:
        raise FindingValidationError(f"{field_name} must be one of {list(choices)}, got {value!r}")
    return normalized


def _coerce_side(value: Any) -> str:
    if value is None:
        return RIGHT
    if not isinstance(value, str):
        raise FindingValidationError("side must be a string")
    normalized = value.strip().upper()
    if normalized not in SIDES:
        raise FindingValidationError(f"side must be RIGHT or LEFT, got {value!r}")
    return normalized


def _coerce_line(value: Any) -> int:
    if isinstance(value, bool):
        raise FindingValidationError("line must be a positive integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 1:
        raise FindingValidationError("line must be a positive integer")
    return value


def _optional_confidence(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized if normalized in CONFIDENCES else None


def _optional_risk(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized if normalized in RISK_LEVELS else None


def _optional_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 0 else None


@dataclass(frozen=True)
class Finding:
    """One review comment candidate (inline or summary)."""

    id: str
    key: str
    path: str
    side: str
    line: int
    severity: str
    category: str
    title: str
    body: str
    evidence: str
    suggested_patch: str | None = None
    comment_type: str = INLINE
    confidence: str | None = None

    @property
    def is_summary(self) -> bool:
        return self.comment_type == SUMMARY

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Finding":
        if not isinstance(raw, dict):
            raise FindingValidationError("finding must be an object")

        patch = _pick(raw, "suggested_patch", "suggestedPatch")
        if patch is not None and not isinstance(patch, str):
            raise FindingValidationError("suggested_patch must be a string")

        comment_type = _pick(raw, "comment_type", "commentType")
        return cls(
            id=_coerce_text(_pick(raw, "comment_id", "id"), "comment_id", required=False),
            key=_coerce_text(_pick(raw, "comment_key", "key"), "comment_key", required=False),
            path=_coerce_text(raw.get("path"), "path"),
            side=_coerce_side(raw.get("side")),
            line=_coerce_line(raw.get("line")),
            severity=_coerce_choice(raw.get("severity"), "severity", SEVERITIES),
            category=_coerce_choice(raw.get("category"), "category", CATEGORIES),
            title=_coerce_text(raw.get("title"), "title"),
            body=_coerce_text(raw.get("body"), "body"),
            evidence=_coerce_text(raw.get("evidence"), "evidence"),
            suggested_patch=patch,
            comment_type=SUMMARY if str(comment_type or "").strip().lower() == SUMMARY else INLINE,
            confidence=_optional_confidence(raw.get("confidence")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "comment_id": self.id,
            "comment_key": self.key,
            "path": self.path,
            "side": self.side,
            "line": self.line,
            "severity": self.severity,
            "category": self.category,
            "title": self.title,
            "body": self.body,
            "evidence": self.evidence,
            "comment_type": self.comment_type,
        }
        if self.suggested_patch is not None:
            out["suggested_patch"] = self.suggested_patch
        if self.confidence is not None:
            out["confidence"] = self.confidence
        return out


def coerce_finding(value: Finding | dict[str, Any]) -> Finding:
    if isinstance(value, Finding):
        return value
    return Finding.from_dict(value)


@dataclass(frozen=True)
class ExistingFindingCandidate:
    """Read projection of a finding persisted by an earlier run on the same pull request."""

    id: int | str
    path: str
    line: int
    side: str
    severity: str
    category: str
    title: str
    body: str = ""
    fingerprint: str | None = None
    hunk_hash: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ExistingFindingCandidate":
        if not isinstance(raw, dict):
            raise FindingValidationError("existing finding must be an object")
        candidate_id = raw.get("id")
        if isinstance(candidate_id, bool) or not isinstance(candidate_id, (int, str)):
            raise FindingValidationError("existing finding id must be an integer or string")
        return cls(
            id=candidate_id,
            path=_coerce_text(raw.get("path"), "path"),
            line=_coerce_line(raw.get("line")),
            side=_coerce_side(raw.get("side")),
            severity=_coerce_choice(raw.get("severity"), "severity", SEVERITIES),
            category=_coerce_choice(raw.get("category"), "category", CATEGORIES),
            title=str(raw.get("title") or ""),
            body=str(raw.get("body") or ""),
            fingerprint=_pick(raw, "fingerprint"),
            hunk_hash=_pick(raw, "hunk_hash", "hunkHash"),
        )


@dataclass(frozen=True)
class ChangedFile:
    """Diff-stat record for one changed file."""

    path: str
    additions: int | None = None
    deletions: int | None = None
    risk: str | None = None
    status: str | None = None

    @property
    def churn(self) -> int:
        return (self.additions or 0) + (self.deletions or 0)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ChangedFile":
        if not isinstance(raw, dict):
            raise ValueError("changed file must be an object")
        path = _pick(raw, "path", "filename")
        if not isinstance(path, str):
            raise ValueError("changed file path must be a string")
        status = raw.get("status")
        return cls(
            path=path,
            additions=_optional_count(raw.get("additions")),
            deletions=_optional_count(raw.get("deletions")),
            risk=_optional_risk(raw.get("risk")),
            status=status if isinstance(status, str) else None,
        )


def coerce_changed_file(value: ChangedFile | dict[str, Any]) -> ChangedFile:
    if isinstance(value, ChangedFile):
        return value
    return ChangedFile.from_dict(value)


@dataclass(frozen=True)
class FeedbackPolicy:
    """Per-category reviewer sentiment. The default instance is a no-op."""

    positive_categories: frozenset[str] = frozenset()
    negative_categories: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "FeedbackPolicy":
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError("feedback policy must be an object")
        positive = _pick(raw, "positive_categories", "positiveCategories") or []
        negative = _pick(raw, "negative_categories", "negativeCategories") or []
        if not isinstance(positive, list) or not isinstance(negative, list):
            raise ValueError("feedback policy categories must be lists")
        return cls(
            positive_categories=frozenset(str(c) for c in positive),
            negative_categories=frozenset(str(c) for c in negative),
        )


@dataclass(frozen=True)
class FileBreakdown:
    path: str
    summary: str
    risk: str | None = None


@dataclass(frozen=True)
class RunSummary:
    """Run-level summary produced alongside the findings of one pass."""

    overview: str
    risk: str
    key_concerns: list[str] = field(default_factory=list)
    what_to_test: list[str] = field(default_factory=list)
    confidence: float | None = None
    file_breakdown: list[FileBreakdown] = field(default_factory=list)
    diagram_mermaid: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RunSummary":
        if not isinstance(raw, dict):
            raise ValueError("summary must be an object")
        risk = _optional_risk(raw.get("risk"))
        if risk is None:
            raise ValueError(f"summary risk must be one of {list(RISK_LEVELS)}")
        confidence = raw.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = None
        breakdown = []
        for item in raw.get("file_breakdown") or []:
            if not isinstance(item, dict) or not isinstance(item.get("path"), str):
                raise ValueError("file_breakdown entries need a path")
            breakdown.append(
                FileBreakdown(
                    path=item["path"],
                    summary=str(item.get("summary") or ""),
                    risk=_optional_risk(item.get("risk")),
                )
            )
        return cls(
            overview=str(raw.get("overview") or ""),
            risk=risk,
            key_concerns=[str(v) for v in raw.get("key_concerns") or []],
            what_to_test=[str(v) for v in raw.get("what_to_test") or []],
            confidence=float(confidence) if confidence is not None else None,
            file_breakdown=breakdown,
            diagram_mermaid=raw.get("diagram_mermaid") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "overview": self.overview,
            "risk": self.risk,
            "key_concerns": list(self.key_concerns),
            "what_to_test": list(self.what_to_test),
            "file_breakdown": [
                {"path": f.path, "summary": f.summary, **({"risk": f.risk} if f.risk else {})}
                for f in self.file_breakdown
            ],
        }
        if self.confidence is not None:
            out["confidence"] = self.confidence
        if self.diagram_mermaid:
            out["diagram_mermaid"] = self.diagram_mermaid
        return out
