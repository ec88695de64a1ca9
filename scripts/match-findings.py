#!/usr/bin/env python3
"""Match refined findings against those posted by the previous run.

Output lists, per finding, whether it updates an existing finding (and how it
was recognised) or is new, plus the previous findings that are now fixed or
obsolete. Nothing is written anywhere except the JSON result.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from lib.review_inputs import InputError, read_existing_findings, read_json, read_text, write_json
from pkg.reviewcore import DiffParseError, Finding, FindingValidationError, build_diff_index, reconcile_findings


def fail(msg: str, code: int = 2) -> int:
    print(f"match-findings: {msg}", file=sys.stderr)
    return code


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="match-findings.py")
    p.add_argument("--diff", required=True, help="Unified diff of the pull request")
    p.add_argument("--findings", required=True, help="Refined findings JSON (refine-findings.py output or list)")
    p.add_argument("--existing", required=True, help="JSON list of previously persisted findings")
    p.add_argument("--output", help="Write JSON here instead of stdout")
    p.add_argument("--verbose", action="store_true", help="Log match decisions to stderr")
    return p.parse_args(argv)


def _load_findings(path: Path) -> list[Finding]:
    data = read_json(path)
    if isinstance(data, dict):
        data = data.get("comments", [])
    if not isinstance(data, list):
        raise InputError(f"{path}: expected a list of findings")
    try:
        return [Finding.from_dict(item) for item in data]
    except FindingValidationError as exc:
        raise InputError(f"{path}: {exc}") from exc


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        diff_index = build_diff_index(read_text(Path(args.diff)))
        findings = _load_findings(Path(args.findings))
        existing = read_existing_findings(Path(args.existing))
    except (DiffParseError, InputError) as exc:
        return fail(str(exc))

    result = reconcile_findings(findings, existing, diff_index)
    write_json(
        {
            "matches": [
                {
                    "comment_id": m.finding.id,
                    "existing_id": m.existing.id if m.existing is not None else None,
                    "method": m.method,
                    "fingerprint": m.fingerprint,
                    "hunk_hash": m.hunk_hash,
                    "context_hash": m.context_hash,
                    "match_key": m.match_key,
                }
                for m in result.matches
            ],
            "fixed": [c.id for c in result.fixed],
            "obsolete": [c.id for c in result.obsolete],
        },
        Path(args.output) if args.output else None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
