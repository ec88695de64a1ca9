"""Content-hash identities for findings.

Cross-run identity never comes from database ids: a finding is recognised
again purely from what it says and where it sits.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import replace

from .models import Finding

COMMENT_ID_LENGTH = 12
COMMENT_KEY_LENGTH = 16


def sha1_hex(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def default_comment_id(finding: Finding) -> str:
    return sha1_hex(f"{finding.path}|{finding.side}|{finding.line}|{finding.title}")[:COMMENT_ID_LENGTH]


def default_comment_key(finding: Finding) -> str:
    return sha1_hex(f"{finding.path}|{finding.line}|{finding.category}|{finding.title}")[:COMMENT_KEY_LENGTH]


def fingerprint_for(finding: Finding) -> str:
    return sha256_hex(f"{finding.key}|{finding.path}")


def match_key_from_parts(fingerprint: str, path: str, hunk_hash: str, title: str) -> str:
    return f"{fingerprint}|{path}|{hunk_hash}|{title}"


def match_key_for(finding: Finding, hunk_hash: str) -> str:
    """Key that is equal for the same issue restated against the same diff hunk."""
    return match_key_from_parts(fingerprint_for(finding), finding.path, hunk_hash, finding.title)


def _suffixed(value: str, seen: dict[str, int]) -> str:
    count = seen.get(value, 0)
    seen[value] = count + 1
    if count == 0:
        return value
    return f"{value}-{count + 1}"


def suffix_collisions(findings: Iterable[Finding]) -> list[Finding]:
    """Make ids and keys unique by suffixing repeats with -2, -3, ...

    Ids and keys are tracked independently; the first occurrence of each
    value is kept unchanged.
    """
    id_seen: dict[str, int] = {}
    key_seen: dict[str, int] = {}
    out: list[Finding] = []
    for finding in findings:
        new_id = _suffixed(finding.id, id_seen)
        new_key = _suffixed(finding.key, key_seen)
        if new_id == finding.id and new_key == finding.key:
            out.append(finding)
        else:
            out.append(replace(finding, id=new_id, key=new_key))
    return out
