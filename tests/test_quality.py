"""Tests for pkg.reviewcore.quality."""

import pytest

from pkg.reviewcore.config import ScoringWeights
from pkg.reviewcore.diff import build_diff_index
from pkg.reviewcore.models import FeedbackPolicy, Finding
from pkg.reviewcore.quality import max_inline_per_file, priority_score, refine_findings

PATCH = """diff --git a/src/foo.ts b/src/foo.ts
index 1111111..2222222 100644
--- a/src/foo.ts
+++ b/src/foo.ts
@@ -1,2 +1,4 @@
 export const a = 1;
+export const b = a + 1;
+export const c = b + 1;
 export const d = c + 1;
"""


@pytest.fixture
def diff_index():
    return build_diff_index(PATCH)


def make_raw(**overrides) -> dict:
    raw = {
        "comment_id": "c1",
        "comment_key": "c1",
        "path": "src/foo.ts",
        "side": "RIGHT",
        "line": 2,
        "severity": "important",
        "category": "bug",
        "title": "Issue",
        "body": "Issue details",
        "evidence": "Quoted evidence",
        "suggested_patch": "const x = 1;",
        "comment_type": "inline",
        "confidence": "high",
    }
    raw.update(overrides)
    return raw


def numbered(count: int, **overrides) -> list[dict]:
    return [
        make_raw(comment_id=f"c{i}", comment_key=f"c{i}", line=i, title=f"Issue {i}", **overrides)
        for i in range(1, count + 1)
    ]


class TestOutputModes:
    def test_summary_only_keeps_every_finding(self, diff_index):
        result = refine_findings(numbered(4), diff_index, summary_only=True, max_inline_comments=3)

        assert len(result.findings) == 4
        assert all(f.comment_type == "summary" for f in result.findings)
        assert result.diagnostics.converted_to_summary == 4
        assert result.diagnostics.dropped_per_file_cap == 0

    def test_inline_not_allowed_forces_summary(self, diff_index):
        result = refine_findings(numbered(2), diff_index, allowed_types=["summary"])
        assert [f.comment_type for f in result.findings] == ["summary", "summary"]
        assert result.diagnostics.converted_to_summary == 2

    def test_per_file_cap_applies_to_inline_findings(self, diff_index):
        result = refine_findings(numbered(4), diff_index, max_inline_comments=3)

        assert [f.line for f in result.findings] == [1, 2]
        assert result.diagnostics.dropped_per_file_cap == 2

    def test_findings_outside_the_diff_become_summaries_and_skip_the_cap(self, diff_index):
        findings = numbered(3) + [make_raw(comment_id="far", comment_key="far", line=10, title="Far away")]
        result = refine_findings(findings, diff_index, max_inline_comments=3)

        far = [f for f in result.findings if f.id == "far"]
        assert len(far) == 1
        assert far[0].comment_type == "summary"
        assert result.diagnostics.converted_to_summary == 1
        assert result.diagnostics.dropped_per_file_cap == 1
        assert sum(1 for f in result.findings if f.comment_type == "inline") == 2

    def test_summary_comments_are_not_converted_twice(self, diff_index):
        result = refine_findings([make_raw(comment_type="summary", line=99)], diff_index)
        assert result.findings[0].comment_type == "summary"
        assert result.diagnostics.converted_to_summary == 0


class TestSeverityRules:
    def test_blocking_without_patch_is_downgraded(self, diff_index):
        result = refine_findings([make_raw(severity="blocking", suggested_patch=None)], diff_index)
        assert result.findings[0].severity == "important"
        assert result.diagnostics.downgraded_blocking == 1

    def test_blocking_with_blank_patch_is_downgraded(self, diff_index):
        result = refine_findings([make_raw(severity="blocking", suggested_patch="  \n ")], diff_index)
        assert result.findings[0].severity == "important"

    def test_blocking_with_patch_survives(self, diff_index):
        result = refine_findings([make_raw(severity="blocking")], diff_index)
        assert result.findings[0].severity == "blocking"
        assert result.diagnostics.downgraded_blocking == 0

    def test_style_findings_are_always_nits(self, diff_index):
        result = refine_findings([make_raw(category="style", severity="blocking")], diff_index)
        assert result.findings[0].severity == "nit"
        assert result.diagnostics.downgraded_blocking == 0

    def test_no_blocking_output_without_patch(self, diff_index):
        findings = [
            make_raw(severity="blocking", suggested_patch=None, line=i, title=f"Issue {i}") for i in range(1, 5)
        ]
        result = refine_findings(findings, diff_index)
        assert not [f for f in result.findings if f.severity == "blocking" and not f.suggested_patch]


class TestCleanup:
    def test_quoted_code_survives_refinement(self, diff_index):
        raw = make_raw(title="Split on \\n drops trailing field", evidence='parts = line.split("\\n")')
        [finding] = refine_findings([raw], diff_index).findings
        assert finding.title == "Split on \\n drops trailing field"
        assert finding.evidence == 'parts = line.split("\\n")'

    def test_text_whitespace_is_collapsed(self, diff_index):
        [finding] = refine_findings([make_raw(title="  Issue \n  Title ", body=" Line 1  \r\nLine 2 ")], diff_index).findings
        assert finding.title == "Issue Title"
        assert finding.body == "Line 1\nLine 2"

    @pytest.mark.parametrize("field", ["title", "body", "evidence"])
    def test_placeholder_text_is_dropped(self, diff_index, field):
        result = refine_findings([make_raw(**{field: "N/A"})], diff_index)
        assert result.findings == []
        assert result.diagnostics.dropped_empty == 1

    def test_malformed_records_are_counted_not_raised(self, diff_index):
        findings = [
            {"path": "src/foo.ts"},
            "not an object",
            make_raw(severity="catastrophic"),
            make_raw(line=0),
            make_raw(),
        ]
        result = refine_findings(findings, diff_index)
        assert len(result.findings) == 1
        assert result.diagnostics.dropped_empty == 4

    def test_ignored_paths_are_dropped(self, diff_index):
        findings = [
            make_raw(comment_id="kept"),
            make_raw(comment_id="vendored", path="node_modules/pkg/lib/index.js"),
            make_raw(comment_id="built", path="./dist/bundle.js"),
            make_raw(comment_id="nested", path="src/dist/util.ts"),
        ]
        result = refine_findings(findings, diff_index, ignore=["node_modules/**", "dist/**"])

        assert sorted(f.id for f in result.findings) == ["kept", "nested"]
        assert result.diagnostics.dropped_ignored == 2

    def test_nothing_is_ignored_by_default(self, diff_index):
        result = refine_findings([make_raw(path="node_modules/pkg/index.js")], diff_index)
        assert len(result.findings) == 1
        assert result.diagnostics.dropped_ignored == 0

    def test_duplicates_keep_the_highest_score(self, diff_index):
        weak = make_raw(comment_id="weak", suggested_patch=None)
        strong = make_raw(comment_id="strong")
        result = refine_findings([weak, strong], diff_index)

        assert [f.id for f in result.findings] == ["strong"]
        assert result.diagnostics.deduplicated == 1

    def test_duplicate_ties_keep_the_first(self, diff_index):
        result = refine_findings([make_raw(body="first"), make_raw(body="second")], diff_index)
        assert [f.body for f in result.findings] == ["first"]

    def test_titles_differing_only_in_punctuation_are_duplicates(self, diff_index):
        result = refine_findings([make_raw(title="Missing null check"), make_raw(title="missing null-check!")], diff_index)
        assert len(result.findings) == 1
        assert result.diagnostics.deduplicated == 1

    def test_colliding_ids_are_suffixed(self, diff_index):
        findings = [
            make_raw(comment_id="dup", comment_key="dup", line=2, title="First"),
            make_raw(comment_id="dup", comment_key="dup", line=3, title="Second"),
        ]
        result = refine_findings(findings, diff_index)
        assert [f.id for f in result.findings] == ["dup", "dup-2"]
        assert [f.key for f in result.findings] == ["dup", "dup-2"]

    def test_missing_ids_are_generated(self, diff_index):
        result = refine_findings([make_raw(comment_id=None, comment_key=None)], diff_index)
        assert len(result.findings[0].id) == 12
        assert len(result.findings[0].key) == 16


class TestOrdering:
    def test_higher_scores_first_then_path_and_line(self, diff_index):
        findings = [
            make_raw(comment_id="bug-3", line=3, title="Bug three"),
            make_raw(comment_id="sec", line=2, category="security", title="Injection"),
            make_raw(comment_id="bug-1", line=1, title="Bug one"),
        ]
        result = refine_findings(findings, diff_index)
        assert [f.id for f in result.findings] == ["sec", "bug-1", "bug-3"]

    def test_negative_feedback_demotes_a_category(self, diff_index):
        findings = [
            make_raw(comment_id="bug", line=2, title="Bug"),
            make_raw(comment_id="perf", line=3, category="performance", title="Slow loop"),
        ]
        plain = refine_findings(findings, diff_index)
        demoted = refine_findings(
            findings, diff_index, feedback_policy=FeedbackPolicy(negative_categories=frozenset({"bug"}))
        )
        assert [f.id for f in plain.findings] == ["bug", "perf"]
        assert [f.id for f in demoted.findings] == ["perf", "bug"]

    def test_custom_weights_change_the_order(self, diff_index):
        weights = ScoringWeights(category={**ScoringWeights().category, "style": 200})
        findings = [
            make_raw(comment_id="bug", line=2, title="Bug"),
            make_raw(comment_id="style", line=3, category="style", severity="nit", title="Naming"),
        ]
        result = refine_findings(findings, diff_index, weights=weights)
        assert [f.id for f in result.findings] == ["style", "bug"]


class TestBatchProperties:
    def mixed_batch(self) -> list:
        return [
            *numbered(3),
            make_raw(comment_id="dup", line=1, title="Issue 1"),
            make_raw(body="n/a"),
            {"title": "no path"},
            make_raw(comment_id="far", line=50, title="Outside"),
            make_raw(comment_id="vendored", path="dist/app.js", title="Vendored"),
        ]

    def test_every_input_is_accounted_for(self, diff_index):
        findings = self.mixed_batch()
        result = refine_findings(findings, diff_index, max_inline_comments=3, ignore=["dist/**"])
        d = result.diagnostics

        assert d.dropped_ignored == 1
        assert d.dropped_empty == 2
        assert d.deduplicated == 1
        assert d.dropped_per_file_cap == 1
        assert (
            len(result.findings) + d.dropped_ignored + d.dropped_empty + d.deduplicated + d.dropped_per_file_cap
            == len(findings)
        )

    def test_inline_findings_respect_the_per_file_cap(self, diff_index):
        result = refine_findings(numbered(4) + self.mixed_batch(), diff_index, max_inline_comments=3)
        per_path: dict[str, int] = {}
        for finding in result.findings:
            if finding.comment_type == "inline":
                per_path[finding.path] = per_path.get(finding.path, 0) + 1
        assert all(count <= max_inline_per_file(3) for count in per_path.values())

    def test_refining_twice_changes_nothing(self, diff_index):
        once = refine_findings(self.mixed_batch(), diff_index, max_inline_comments=3)
        twice = refine_findings(once.findings, diff_index, max_inline_comments=3)

        assert twice.findings == once.findings
        assert twice.diagnostics.dropped_empty == 0
        assert twice.diagnostics.deduplicated == 0
        assert twice.diagnostics.dropped_per_file_cap == 0

    def test_diagnostics_use_camel_case_keys(self, diff_index):
        result = refine_findings([], diff_index)
        assert result.diagnostics.to_dict() == {
            "droppedIgnored": 0,
            "droppedEmpty": 0,
            "deduplicated": 0,
            "convertedToSummary": 0,
            "downgradedBlocking": 0,
            "droppedPerFileCap": 0,
        }


@pytest.mark.parametrize("limit,expected", [(1, 2), (3, 2), (9, 3), (20, 6), (100, 6)])
def test_max_inline_per_file(limit, expected):
    assert max_inline_per_file(limit) == expected


class TestPriorityScore:
    def finding(self, **overrides) -> Finding:
        return Finding.from_dict(make_raw(**overrides))

    def test_all_boosts(self):
        score = priority_score(
            self.finding(evidence="x" * 160),
            in_diff=True,
            in_changed_path=True,
            feedback_policy=FeedbackPolicy(),
            weights=ScoringWeights(),
        )
        assert score == pytest.approx(65 + 20 + 6 + 2 + 6 + 4)

    def test_evidence_boost_is_capped(self):
        score = priority_score(
            self.finding(evidence="x" * 5000, suggested_patch=None),
            in_diff=False,
            in_changed_path=False,
            feedback_policy=FeedbackPolicy(),
            weights=ScoringWeights(),
        )
        assert score == pytest.approx(65 + 20 + 6)

    def test_missing_confidence_uses_default(self):
        score = priority_score(
            self.finding(severity="nit", category="style", confidence=None, suggested_patch=None),
            in_diff=False,
            in_changed_path=False,
            feedback_policy=FeedbackPolicy(),
            weights=ScoringWeights(),
        )
        assert score == pytest.approx(25 * 0.7 + 2)

    def test_feedback_adjustments(self):
        finding = self.finding(suggested_patch=None)
        kwargs = {"in_diff": False, "in_changed_path": False, "weights": ScoringWeights()}
        base = priority_score(finding, feedback_policy=FeedbackPolicy(), **kwargs)
        boosted = priority_score(finding, feedback_policy=FeedbackPolicy(positive_categories=frozenset({"bug"})), **kwargs)
        penalized = priority_score(finding, feedback_policy=FeedbackPolicy(negative_categories=frozenset({"bug"})), **kwargs)
        assert boosted - base == pytest.approx(8)
        assert base - penalized == pytest.approx(18)
