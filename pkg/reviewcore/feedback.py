"""Derive a category feedback policy from reviewer reactions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .models import FeedbackPolicy

POSITIVE_REACTIONS = frozenset({"thumbs_up", "+1", "heart", "laugh", "hooray"})
NEGATIVE_REACTIONS = frozenset({"thumbs_down", "-1", "confused"})

MIN_VOTES = 3
DOMINANCE_RATIO = 1.5


def build_feedback_policy(
    events: Iterable[Mapping[str, Any]],
    category_by_comment: Mapping[str, str],
) -> FeedbackPolicy:
    """Count reactions per finding category and flag the lopsided ones.

    Each event carries a ``comment_id``, a ``type`` ("reaction" or "reply")
    and either a ``sentiment`` (reaction name) or an ``action``. A resolved
    reply counts as positive. Events on comments with no known category are
    ignored.
    """
    counts: dict[str, list[int]] = {}
    for event in events:
        comment_id = event.get("comment_id")
        if not comment_id:
            continue
        category = category_by_comment.get(str(comment_id))
        if not category:
            continue
        entry = counts.setdefault(category, [0, 0])
        kind = event.get("type")
        sentiment = event.get("sentiment")
        if kind == "reaction" and sentiment:
            if sentiment in POSITIVE_REACTIONS:
                entry[0] += 1
            if sentiment in NEGATIVE_REACTIONS:
                entry[1] += 1
        if kind == "reply" and event.get("action") == "resolved":
            entry[0] += 1

    positive = set()
    negative = set()
    for category, (pos, neg) in counts.items():
        if neg >= MIN_VOTES and neg >= pos * DOMINANCE_RATIO:
            negative.add(category)
        if pos >= MIN_VOTES and pos >= neg * DOMINANCE_RATIO:
            positive.add(category)
    return FeedbackPolicy(positive_categories=frozenset(positive), negative_categories=frozenset(negative))
