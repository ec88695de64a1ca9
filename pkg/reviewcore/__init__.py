"""Consolidation of LLM review findings into a stable, prioritized comment set."""

from .changed_files import parse_git_changed_files
from .config import DEFAULTS_FILE, ConfigError, ReviewConfig, ReviewLimits, ScoringWeights, load_review_config
from .coverage import CoveragePlan, CoverageStats, CoverageTarget, build_coverage_plan
from .diff import (
    DiffIndex,
    DiffParseError,
    build_diff_index,
    context_hash_for_comment,
    hunk_hash_for_comment,
    is_line_in_diff,
    normalize_diff_path,
    normalize_path,
)
from .feedback import build_feedback_policy
from .fingerprint import fingerprint_for, match_key_for
from .matching import FindingMatch, Reconciliation, reconcile_findings, select_semantic_candidate
from .merge import MergeResult, merge_supplemental_findings, merge_supplemental_summary
from .models import (
    ChangedFile,
    ExistingFindingCandidate,
    FeedbackPolicy,
    FileBreakdown,
    Finding,
    FindingValidationError,
    RunSummary,
)
from .quality import QualityDiagnostics, RefineResult, refine_findings

__all__ = [
    "DEFAULTS_FILE",
    "ChangedFile",
    "ConfigError",
    "CoveragePlan",
    "CoverageStats",
    "CoverageTarget",
    "DiffIndex",
    "DiffParseError",
    "ExistingFindingCandidate",
    "FeedbackPolicy",
    "FileBreakdown",
    "Finding",
    "FindingMatch",
    "FindingValidationError",
    "MergeResult",
    "QualityDiagnostics",
    "Reconciliation",
    "RefineResult",
    "ReviewConfig",
    "ReviewLimits",
    "RunSummary",
    "ScoringWeights",
    "build_coverage_plan",
    "build_diff_index",
    "build_feedback_policy",
    "context_hash_for_comment",
    "fingerprint_for",
    "hunk_hash_for_comment",
    "is_line_in_diff",
    "load_review_config",
    "match_key_for",
    "merge_supplemental_findings",
    "merge_supplemental_summary",
    "normalize_diff_path",
    "normalize_path",
    "parse_git_changed_files",
    "reconcile_findings",
    "refine_findings",
    "select_semantic_candidate",
]
