"""Typed loader for review consolidation settings (defaults/review.yml).

Scoring weights are carried in an immutable object handed to the engine, so
tuning them never means touching module globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .models import CATEGORIES, COMMENT_TYPES, CONFIDENCES, INLINE, SEVERITIES, SUMMARY

# Resolve relative to this file: pkg/reviewcore/ -> repo root
DEFAULTS_FILE = Path(__file__).parent.parent.parent / "defaults" / "review.yml"
DEFAULT_IGNORE = ("node_modules/**", "dist/**")


class ConfigError(RuntimeError):
    """Raised for a missing, unreadable or invalid review config."""


def _frozen(values: dict[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class ScoringWeights:
    """Priority score weights for the quality refinement pass."""

    severity: Mapping[str, float] = field(
        default_factory=lambda: _frozen({"blocking": 100, "important": 65, "nit": 25})
    )
    confidence: Mapping[str, float] = field(
        default_factory=lambda: _frozen({"high": 1.0, "medium": 0.7, "low": 0.35})
    )
    default_confidence: float = 0.7
    category: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {
                "security": 25,
                "bug": 20,
                "performance": 15,
                "testing": 12,
                "maintainability": 8,
                "style": 2,
            }
        )
    )
    suggestion_boost: float = 6
    evidence_boost_cap: int = 6
    evidence_chars_per_point: int = 80
    in_diff_boost: float = 6
    changed_path_boost: float = 4
    feedback_boost: float = 8
    feedback_penalty: float = 18


@dataclass(frozen=True)
class ReviewLimits:
    max_inline_comments: int = 20
    max_key_concerns: int = 5
    max_coverage_targets: int = 8


@dataclass(frozen=True)
class ReviewConfig:
    limits: ReviewLimits = field(default_factory=ReviewLimits)
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    summary_only: bool = False
    allowed_types: tuple[str, ...] = (INLINE, SUMMARY)
    ignore: tuple[str, ...] = DEFAULT_IGNORE

    @classmethod
    def from_dict(cls, raw: Any) -> "ReviewConfig":
        if raw is None:
            return cls()
        cfg = _require_mapping(raw, "config")
        return cls(
            limits=_parse_limits(cfg.get("limits")),
            weights=_parse_weights(cfg.get("scoring")),
            summary_only=_parse_summary_only(cfg.get("output")),
            allowed_types=_parse_allowed_types(cfg.get("comment_types")),
            ignore=_parse_ignore(cfg.get("ignore")),
        )


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _require_bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{ctx}: expected boolean")
    return value


def _require_positive_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 1:
        raise ConfigError(f"{ctx}: must be >= 1")
    return value


def _require_number(value: Any, ctx: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx}: expected number")
    if value < 0:
        raise ConfigError(f"{ctx}: must be >= 0")
    return value


def _parse_limits(raw: Any) -> ReviewLimits:
    if raw is None:
        return ReviewLimits()
    limits = _require_mapping(raw, "limits")
    defaults = ReviewLimits()
    values = {}
    for name in ("max_inline_comments", "max_key_concerns", "max_coverage_targets"):
        value = limits.get(name)
        values[name] = getattr(defaults, name) if value is None else _require_positive_int(value, f"limits.{name}")
    return ReviewLimits(**values)


def _parse_weight_table(raw: Any, ctx: str, names: tuple[str, ...], base: Mapping[str, float]) -> Mapping[str, float]:
    if raw is None:
        return base
    table = _require_mapping(raw, ctx)
    merged = dict(base)
    for name, value in table.items():
        if name not in names:
            raise ConfigError(f"{ctx}: unknown key {name!r}")
        merged[name] = _require_number(value, f"{ctx}.{name}")
    return _frozen(merged)


def _parse_weights(raw: Any) -> ScoringWeights:
    if raw is None:
        return ScoringWeights()
    scoring = _require_mapping(raw, "scoring")
    defaults = ScoringWeights()
    values: dict[str, Any] = {
        "severity": _parse_weight_table(scoring.get("severity"), "scoring.severity", SEVERITIES, defaults.severity),
        "confidence": _parse_weight_table(
            scoring.get("confidence"), "scoring.confidence", CONFIDENCES, defaults.confidence
        ),
        "category": _parse_weight_table(scoring.get("category"), "scoring.category", CATEGORIES, defaults.category),
    }
    for name in (
        "default_confidence",
        "suggestion_boost",
        "in_diff_boost",
        "changed_path_boost",
        "feedback_boost",
        "feedback_penalty",
    ):
        value = scoring.get(name)
        values[name] = getattr(defaults, name) if value is None else _require_number(value, f"scoring.{name}")
    for name in ("evidence_boost_cap", "evidence_chars_per_point"):
        value = scoring.get(name)
        values[name] = getattr(defaults, name) if value is None else _require_positive_int(value, f"scoring.{name}")
    return ScoringWeights(**values)


def _parse_summary_only(raw: Any) -> bool:
    if raw is None:
        return False
    output = _require_mapping(raw, "output")
    value = output.get("summary_only")
    return False if value is None else _require_bool(value, "output.summary_only")


def _parse_allowed_types(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return (INLINE, SUMMARY)
    comment_types = _require_mapping(raw, "comment_types")
    allow = comment_types.get("allow")
    if allow is None:
        return (INLINE, SUMMARY)
    if not isinstance(allow, list) or not allow:
        raise ConfigError("comment_types.allow: expected non-empty list")
    out: list[str] = []
    for idx, item in enumerate(allow):
        if item not in COMMENT_TYPES:
            raise ConfigError(f"comment_types.allow[{idx}]: must be one of {list(COMMENT_TYPES)}")
        if item not in out:
            out.append(item)
    return tuple(out)


def _parse_ignore(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return DEFAULT_IGNORE
    if not isinstance(raw, list):
        raise ConfigError("ignore: expected list")
    out: list[str] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"ignore[{idx}]: expected non-empty string")
        out.append(item.strip())
    return tuple(out)


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def load_review_config(path: Path = DEFAULTS_FILE) -> ReviewConfig:
    """Load and validate a review config YAML file."""
    return ReviewConfig.from_dict(_load_yaml(path))
