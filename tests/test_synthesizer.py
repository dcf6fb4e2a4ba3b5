"""Tests for the IntentSynthesizer."""

from clarity_loop.core.synthesizer import IntentSynthesizer
from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import GoalPriority

from tests.test_analyzer import SCENARIO, _analyze
from tests.test_resolution import _after_goals, _ask, _respond


# ── Helpers ──────────────────────────────────────────────────────────────────

FINAL_ANSWER = (
    "Prioritize quality over engagement because trust matters more. Up to 50000 users. "
    "Only public profiles in the EU. Accuracy above 90%. Responses within 200 ms. Yes"
)

STATED_UP_FRONT = (
    "Build a ranking api for internal employees on web using event data. "
    "Latency under 200ms. 1 million users. Only the EU region. Accuracy above 90%."
)


def _resolved_scenario() -> ConversationContext:
    """The three-turn scenario, ending with every issue resolved."""
    ctx, report = _after_goals()
    _ask(ctx, report)
    _, final = _respond(ctx, FINAL_ANSWER)
    assert final.sufficient
    return ctx


class TestCompleteIntent:
    def test_scenario_is_complete(self) -> None:
        result = IntentSynthesizer().synthesize(_resolved_scenario())
        assert not result.is_partial
        intent = result.intent
        assert intent.title == SCENARIO
        assert {c.category for c in intent.constraints} == {
            "performance", "scale", "boundary", "quality",
        }
        assert len(intent.resolved_tradeoffs) == 1
        assert intent.resolved_tradeoffs[0].chosen_option == "quality"

    def test_one_constraint_per_resolved_constraint_issue(self) -> None:
        ctx = _resolved_scenario()
        resolved = [
            i for i in ctx.issues.values()
            if i.kind in ("missing_constraint", "vague_constraint") and i.resolved
        ]
        assert len(IntentSynthesizer().synthesize(ctx).intent.constraints) == len(resolved)

    def test_goal_priorities_follow_tradeoff_and_outcomes(self) -> None:
        goals = {g.description: g for g in IntentSynthesizer().synthesize(_resolved_scenario()).intent.goals}
        assert goals["quality"].priority == GoalPriority.PRIMARY
        assert goals["quality"].measurable_outcome == "accuracy above 90%"
        assert not goals["quality"].flagged
        # Lost the tradeoff and never got an outcome: kept, downgraded, flagged
        assert goals["engagement"].priority == GoalPriority.SECONDARY
        assert goals["engagement"].flagged

    def test_assumptions_and_definitions_are_recorded(self) -> None:
        assumptions = IntentSynthesizer().synthesize(_resolved_scenario()).intent.assumptions
        assert "'fair' means: engagement and quality" in assumptions
        assert any(a.startswith("audience:") and "(validated)" in a for a in assumptions)

    def test_boundaries_come_from_boundary_constraint(self) -> None:
        scope = IntentSynthesizer().synthesize(_resolved_scenario()).intent.scope
        assert scope.boundaries == ["only public profiles in the eu"]
        assert "ranking" in scope.in_scope


class TestPartialIntent:
    def test_open_critical_issues_are_named(self) -> None:
        ctx = ConversationContext()
        _analyze(ctx, SCENARIO)
        result = IntentSynthesizer().synthesize(ctx)
        assert result.is_partial
        named = {w.issue_id for w in result.warnings}
        assert {"undefined_term:fair", "missing_constraint:boundary", "missing_constraint:quality"} <= named

    def test_resolved_contradiction_without_tradeoff_is_a_gap(self) -> None:
        ctx, _ = _after_goals()
        issue = ctx.issue("contradiction:engagement+quality")
        ctx.update_issue(issue.model_copy(update={"resolved": True}), "closed")
        result = IntentSynthesizer().synthesize(ctx)
        gap = next(w for w in result.warnings if w.issue_id == issue.id)
        assert "without a tradeoff" in gap.message

    def test_open_contradiction_is_a_gap(self) -> None:
        ctx, _ = _after_goals()
        result = IntentSynthesizer().synthesize(ctx)
        assert "contradiction:engagement+quality" in {w.issue_id for w in result.warnings}

    def test_unvalidated_defaults_are_recorded_not_hidden(self) -> None:
        ctx = ConversationContext()
        _analyze(ctx, SCENARIO)
        assumptions = IntentSynthesizer().synthesize(ctx).intent.assumptions
        assert any("(default, not validated)" in a for a in assumptions)


class TestExclusions:
    def test_excluded_constraint_goes_out_of_scope(self) -> None:
        ctx = ConversationContext()
        _analyze(ctx, SCENARIO)
        _respond(ctx, "Performance is not needed")
        intent = IntentSynthesizer().synthesize(ctx).intent
        assert "performance requirements" in intent.scope.out_of_scope
        perf = next(c for c in intent.constraints if c.category == "performance")
        assert perf.value is None


class TestStatedUpFront:
    def test_opening_request_constraints_reach_the_intent(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, STATED_UP_FRONT)
        assert report.sufficient
        assert report.score == 100.0

        result = IntentSynthesizer().synthesize(ctx)
        assert not result.is_partial
        assert {c.category: c.value for c in result.intent.constraints} == {
            "performance": "latency under 200ms",
            "scale": "1 million users",
            "boundary": "only the eu region",
            "quality": "accuracy above 90%",
        }
        assert result.intent.scope.boundaries == ["only the eu region"]
