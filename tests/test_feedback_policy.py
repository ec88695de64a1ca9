"""Tests for pkg.reviewcore.feedback."""

from pkg.reviewcore.feedback import build_feedback_policy
from pkg.reviewcore.models import FeedbackPolicy

CATEGORIES = {"c1": "style", "c2": "security", "c3": "bug"}


def reactions(comment_id: str, sentiment: str, count: int) -> list[dict]:
    return [{"comment_id": comment_id, "type": "reaction", "sentiment": sentiment} for _ in range(count)]


def test_no_events_gives_empty_policy():
    assert build_feedback_policy([], CATEGORIES) == FeedbackPolicy()


def test_lopsided_categories_are_flagged():
    events = [
        *reactions("c1", "thumbs_down", 3),
        *reactions("c2", "heart", 2),
        {"comment_id": "c2", "type": "reply", "action": "resolved"},
    ]
    policy = build_feedback_policy(events, CATEGORIES)
    assert policy.negative_categories == {"style"}
    assert policy.positive_categories == {"security"}


def test_too_few_votes_are_ignored():
    policy = build_feedback_policy(reactions("c1", "-1", 2), CATEGORIES)
    assert policy == FeedbackPolicy()


def test_mixed_feedback_is_not_flagged():
    events = [*reactions("c3", "+1", 4), *reactions("c3", "confused", 3)]
    assert build_feedback_policy(events, CATEGORIES) == FeedbackPolicy()


def test_unknown_comments_and_other_events_are_ignored():
    events = [
        *reactions("unknown", "thumbs_down", 5),
        *reactions("c1", "eyes", 5),
        {"type": "reaction", "sentiment": "thumbs_down"},
        {"comment_id": "c1", "type": "reply", "action": "dismissed"},
    ]
    assert build_feedback_policy(events, CATEGORIES) == FeedbackPolicy()


def test_policy_from_dict_accepts_camel_case():
    policy = FeedbackPolicy.from_dict({"positiveCategories": ["bug"], "negative_categories": ["style"]})
    assert policy.positive_categories == {"bug"}
    assert policy.negative_categories == {"style"}
