"""Tests for the ClarityAnalyzer: detection, reconciliation, scoring, modes."""

from clarity_loop.core.analyzer import ClarityAnalyzer, revision_issue_id
from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import IssueKind, Mode, Severity, TurnKind
from clarity_loop.domain.issue import LOW_CONFIDENCE_ISSUE_ID
from clarity_loop.domain.report import ClarityReport, SeverityWeights
from clarity_loop.domain.request import ParsedRequest, Request

from tests.test_request import _inbound


# ── Helpers ──────────────────────────────────────────────────────────────────

SCENARIO = "Build a fair user ranking system"


def _analyze(ctx: ConversationContext, text: str, analyzer: ClarityAnalyzer | None = None) -> ClarityReport:
    """Record *text* on *ctx*, analyze it and merge the issues back."""
    parsed = _inbound(ctx, text)
    report = (analyzer or ClarityAnalyzer()).analyze(parsed, ctx)
    ctx.merge_issues(report.issues)
    return report


class TestUndefinedTerms:
    def test_scenario_flags_fair_as_critical(self) -> None:
        report = _analyze(ConversationContext(), SCENARIO)
        fair = report.get("undefined_term:fair")
        assert fair is not None
        assert fair.severity == Severity.CRITICAL
        assert fair.affected == frozenset({"fair"})
        assert len(fair.alternatives) >= 2

    def test_known_term_is_not_flagged(self) -> None:
        report = _analyze(ConversationContext(), SCENARIO)
        assert report.get("undefined_term:ranking") is None

    def test_inline_definition_clears_term(self) -> None:
        report = _analyze(ConversationContext(), "Build a fair ranking, where fair means equal exposure")
        assert report.get("undefined_term:fair") is None

    def test_non_goal_vague_term_is_important(self) -> None:
        report = _analyze(ConversationContext(), "Build an intuitive dashboard")
        issue = report.get("undefined_term:intuitive")
        assert issue is not None
        assert issue.severity == Severity.IMPORTANT


class TestConstraints:
    def test_scenario_misses_every_category(self) -> None:
        report = _analyze(ConversationContext(), SCENARIO)
        severities = {
            i.category: i.severity for i in report.unresolved_of(IssueKind.MISSING_CONSTRAINT)
        }
        assert severities == {
            "boundary": Severity.CRITICAL,
            "quality": Severity.CRITICAL,
            "performance": Severity.IMPORTANT,
            "scale": Severity.IMPORTANT,
        }

    def test_stated_category_is_recorded_resolved(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, "Build a ranking system. Accuracy above 90%.")
        quality = report.get("missing_constraint:quality")
        assert quality.resolved
        assert quality.value == "accuracy above 90%"
        assert quality not in report.unresolved
        assert not report.get("missing_constraint:boundary").resolved

        events = [e for e in ctx.resolutions if e.issue_id == "missing_constraint:quality"]
        assert [(e.how, e.iteration) for e in events] == [("stated", 1)]

    def test_stated_constraint_is_logged_once(self) -> None:
        ctx = ConversationContext()
        _analyze(ctx, "Build a ranking system. Accuracy above 90%.")
        _analyze(ctx, "hmm")
        assert len([e for e in ctx.resolutions if e.how == "stated"]) == 1

    def test_audience_noun_without_quantity_is_not_scale(self) -> None:
        report = _analyze(ConversationContext(), "Build a ranking for internal users")
        assert not report.get("missing_constraint:scale").resolved

    def test_vague_constraint_is_one_step_softer(self) -> None:
        report = _analyze(ConversationContext(), "Build a fast ranking system")
        vague = report.get("vague_constraint:performance")
        assert vague is not None
        assert vague.severity == Severity.MINOR
        assert vague.vague_value == "build a fast ranking system"
        assert report.get("missing_constraint:performance") is None

    def test_resolved_constraint_stays_resolved(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, SCENARIO)
        boundary = report.get("missing_constraint:boundary")
        ctx.update_issue(boundary.model_copy(update={"resolved": True, "value": "EU only"}), "specified")

        report = _analyze(ctx, "hmm")
        assert report.get("missing_constraint:boundary").resolved


class TestContradictions:
    def test_conflicting_goals_raise_contradiction(self) -> None:
        report = _analyze(ConversationContext(), "Maximize engagement while protecting privacy")
        issue = report.get("contradiction:engagement+privacy")
        assert issue is not None
        assert issue.tradeoff_required is True
        assert issue.severity == Severity.CRITICAL
        assert set(issue.options) == {"engagement", "privacy"}

    def test_contradiction_emerges_on_later_turn(self) -> None:
        ctx = ConversationContext()
        first = _analyze(ctx, SCENARIO)
        assert not first.unresolved_of(IssueKind.CONTRADICTION)
        second = _analyze(ctx, "engagement and quality")
        issue = second.get("contradiction:engagement+quality")
        assert issue is not None
        assert issue.affected == frozenset({"engagement", "quality"})
        assert issue.first_seen == 2

    def test_non_conflicting_goals(self) -> None:
        report = _analyze(ConversationContext(), "quality and safety")
        assert not report.unresolved_of(IssueKind.CONTRADICTION)

    def test_revision_issue_id(self) -> None:
        assert revision_issue_id("missing_constraint:scale") == (
            "contradiction:revision_missing_constraint_scale"
        )


class TestAssumptions:
    def test_unqualified_request_gets_minor_assumptions(self) -> None:
        report = _analyze(ConversationContext(), SCENARIO)
        assumptions = report.unresolved_of(IssueKind.ASSUMPTION)
        assert {a.slot for a in assumptions} == {"audience", "data", "platform"}
        assert all(a.severity == Severity.MINOR for a in assumptions)
        assert all(a.needs_validation for a in assumptions)
        assert all(a.affected == frozenset({"ranking"}) for a in assumptions)

    def test_qualified_request_needs_no_assumptions(self) -> None:
        report = _analyze(
            ConversationContext(), "Build a ranking for internal staff on mobile using logs",
        )
        assert report.unresolved_of(IssueKind.ASSUMPTION) == []


class TestLowConfidence:
    def test_degraded_parse_uses_heuristics(self) -> None:
        ctx = ConversationContext()
        parsed = ParsedRequest.degraded_from("Make it fair and fast")
        ctx.record_inbound(Request(raw_text=parsed.raw_text), parsed, TurnKind.REQUEST)
        report = ClarityAnalyzer().analyze(parsed, ctx)

        assert report.low_confidence
        assert report.get(LOW_CONFIDENCE_ISSUE_ID).severity == Severity.CRITICAL
        assert report.get("undefined_term:fair") is not None
        assert report.get("vague_constraint:performance") is not None
        assert not report.sufficient


class TestScoring:
    def test_scenario_score(self) -> None:
        report = _analyze(ConversationContext(), SCENARIO)
        # 3 critical, 2 important, 3 minor
        assert report.score == 8.0
        assert not report.sufficient

    def test_score_never_negative(self) -> None:
        analyzer = ClarityAnalyzer(weights=SeverityWeights(critical=50, important=50, minor=50))
        report = _analyze(ConversationContext(), SCENARIO, analyzer)
        assert report.score == 0.0

    def test_open_critical_blocks_sufficiency(self) -> None:
        analyzer = ClarityAnalyzer(weights=SeverityWeights(critical=1, important=1, minor=1))
        report = _analyze(
            ConversationContext(),
            "Build a fair ranking system. Only EU profiles. Accuracy above 90%. "
            "Up to 5000 users. Within 200 ms.",
            analyzer,
        )
        assert report.score >= 90
        assert report.blocking
        assert not report.sufficient

    def test_fully_specified_request_is_sufficient(self) -> None:
        report = _analyze(
            ConversationContext(),
            "Build a ranking for public users on the web using logs. Only EU profiles. "
            "Accuracy above 90%. Responses within 200 ms. Up to 5000 users.",
        )
        assert report.sufficient
        assert report.score == 100.0


class TestModes:
    TEXT = "Build a ranking system. Only EU profiles. Accuracy above 90%."

    def test_challenge_mode_counts_minor_issues(self) -> None:
        report = _analyze(ConversationContext(mode=Mode.CHALLENGE), self.TEXT)
        assert report.score == 68.0
        assert not report.sufficient

    def test_build_mode_lowers_the_bar(self) -> None:
        report = _analyze(ConversationContext(mode=Mode.BUILD), self.TEXT)
        assert report.score == 80.0
        assert report.sufficient

    def test_build_mode_never_skips_critical_checks(self) -> None:
        report = _analyze(ConversationContext(mode=Mode.BUILD), SCENARIO)
        assert report.get("undefined_term:fair") is not None
        assert not report.sufficient


class TestIdempotence:
    def test_analyze_twice_yields_identical_report(self) -> None:
        ctx = ConversationContext()
        parsed = _inbound(ctx, SCENARIO)
        analyzer = ClarityAnalyzer()
        assert analyzer.analyze(parsed, ctx) == analyzer.analyze(parsed, ctx)

    def test_analyze_does_not_mutate_context(self) -> None:
        ctx = ConversationContext()
        parsed = _inbound(ctx, SCENARIO)
        ClarityAnalyzer().analyze(parsed, ctx)
        assert ctx.issues == {}
        assert len(ctx.parses) == 1

    def test_issue_ids_are_stable_across_turns(self) -> None:
        ctx = ConversationContext()
        first = _analyze(ctx, SCENARIO)
        second = _analyze(ctx, "hmm")
        assert {i.id for i in first.issues} <= {i.id for i in second.issues}
        assert second.get("undefined_term:fair").first_seen == 1
