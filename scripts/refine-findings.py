#!/usr/bin/env python3
"""Refine one review pass (and optionally merge a supplemental pass).

Reads the PR diff, the LLM findings, and optional changed-file stats and
feedback policy, then writes the final comment set, refinement diagnostics
and the coverage plan as JSON.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from lib.review_inputs import (
    InputError,
    read_changed_files,
    read_feedback_policy,
    read_review,
    read_text,
    write_json,
)
from pkg.reviewcore import (
    DEFAULTS_FILE,
    ConfigError,
    DiffParseError,
    RefineResult,
    build_coverage_plan,
    build_diff_index,
    load_review_config,
    merge_supplemental_findings,
    merge_supplemental_summary,
    refine_findings,
)


def fail(msg: str, code: int = 2) -> int:
    print(f"refine-findings: {msg}", file=sys.stderr)
    return code


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="refine-findings.py")
    p.add_argument("--diff", required=True, help="Unified diff of the pull request")
    p.add_argument("--findings", required=True, help="LLM review JSON (list or {comments, summary})")
    p.add_argument("--changed-files", help="JSON list of {path, additions, deletions, risk}")
    p.add_argument("--feedback", help="JSON feedback policy {positive_categories, negative_categories}")
    p.add_argument("--config", help="Review config YAML (default: defaults/review.yml)")
    p.add_argument("--supplemental", help="Supplemental pass review JSON to merge in")
    p.add_argument("--output", help="Write JSON here instead of stdout")
    p.add_argument("--verbose", action="store_true", help="Log diagnostics to stderr")
    return p.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        config = load_review_config(Path(args.config) if args.config else DEFAULTS_FILE)
        diff_index = build_diff_index(read_text(Path(args.diff)))
        comments, summary = read_review(Path(args.findings))
        changed_files = read_changed_files(Path(args.changed_files) if args.changed_files else None)
        policy = read_feedback_policy(Path(args.feedback) if args.feedback else None)
        supplemental = read_review(Path(args.supplemental)) if args.supplemental else None
    except (ConfigError, DiffParseError, InputError) as exc:
        return fail(str(exc))

    def refine(batch: list) -> RefineResult:
        return refine_findings(
            batch,
            diff_index,
            changed_files,
            max_inline_comments=config.limits.max_inline_comments,
            summary_only=config.summary_only,
            allowed_types=config.allowed_types,
            feedback_policy=policy,
            weights=config.weights,
            ignore=config.ignore,
        )

    base = refine(comments)
    plan = build_coverage_plan(
        changed_files,
        base.findings,
        max_targets=config.limits.max_coverage_targets,
    )
    findings = base.findings

    result: dict = {
        "diagnostics": base.diagnostics.to_dict(),
        "coverage": plan.to_dict(),
    }

    if supplemental is not None:
        extra_comments, extra_summary = supplemental
        extra = refine(extra_comments)
        merged = merge_supplemental_findings(findings, extra.findings)
        findings = merged.findings
        result["supplemental"] = {
            "diagnostics": extra.diagnostics.to_dict(),
            **merged.counts(),
        }
        if summary is not None and extra_summary is not None:
            summary = merge_supplemental_summary(
                summary,
                extra_summary,
                max_key_concerns=config.limits.max_key_concerns,
            )
        elif summary is None:
            summary = extra_summary

    result["comments"] = [f.to_dict() for f in findings]
    if summary is not None:
        result["summary"] = summary.to_dict()

    write_json(result, Path(args.output) if args.output else None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
