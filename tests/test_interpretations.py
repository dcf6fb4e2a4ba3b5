"""Tests for the InterpretationGenerator."""

from itertools import combinations

from clarity_loop.core.interpretations import InterpretationGenerator
from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import Severity
from clarity_loop.domain.issue import ContradictionIssue
from clarity_loop.domain.report import ClarityReport

from tests.test_analyzer import SCENARIO, _analyze


def _pairwise_disjoint(interpretations) -> bool:
    return all(
        not (a.key_assumptions & b.key_assumptions)
        for a, b in combinations(interpretations, 2)
    )


class TestFromContradiction:
    def test_scenario_offers_focused_readings(self) -> None:
        ctx = ConversationContext()
        _analyze(ctx, SCENARIO)
        report = _analyze(ctx, "engagement and quality")
        interps = InterpretationGenerator().generate(ctx.cumulative_parse(), report)

        assert 2 <= len(interps) <= 4
        titles = [i.title for i in interps]
        assert "Engagement-focused" in titles
        assert "Quality-focused" in titles
        assert _pairwise_disjoint(interps)

    def test_focus_and_source_are_set(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, "Maximize engagement while protecting privacy")
        interps = InterpretationGenerator().generate(ctx.cumulative_parse(), report)
        by_focus = {i.focus: i for i in interps if i.focus}
        assert set(by_focus) == {"engagement", "privacy"}
        assert all(i.source_issue_id == "contradiction:engagement+privacy" for i in interps)

    def test_ids_are_deterministic(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, "engagement and quality")
        gen = InterpretationGenerator()
        first = [i.id for i in gen.generate(ctx.cumulative_parse(), report)]
        second = [i.id for i in gen.generate(ctx.cumulative_parse(), report)]
        assert first == second
        assert "interp:contradiction:engagement+quality:quality" in first

    def test_differentiators_name_both_goals(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, "engagement and quality")
        for interp in InterpretationGenerator().generate(ctx.cumulative_parse(), report):
            text = " ".join(interp.differentiators)
            assert "engagement" in text and "quality" in text


class TestFromAmbiguousTerm:
    def test_multi_definition_term_offers_one_reading_per_definition(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, SCENARIO)
        interps = InterpretationGenerator().generate(ctx.cumulative_parse(), report)
        assert 2 <= len(interps) <= 4
        assert all(i.source_issue_id == "undefined_term:fair" for i in interps)
        assert all(i.focus for i in interps)
        assert _pairwise_disjoint(interps)

    def test_single_definition_term_offers_nothing(self) -> None:
        ctx = ConversationContext()
        report = _analyze(ctx, "Build an intuitive dashboard")
        assert InterpretationGenerator().generate(ctx.cumulative_parse(), report) == []


class TestNothingToOffer:
    def test_clear_report_offers_nothing(self) -> None:
        report = ClarityReport(score=100.0, issues=[], sufficient=True)
        ctx = ConversationContext()
        assert InterpretationGenerator().generate(ctx.cumulative_parse(), report) == []

    def test_revision_contradictions_are_not_branched(self) -> None:
        issue = ContradictionIssue(
            id="contradiction:revision_x", severity=Severity.CRITICAL, description="x",
            options=("50000", "2000000"), revision_of="missing_constraint:scale",
        )
        report = ClarityReport(score=80.0, issues=[issue], sufficient=False)
        ctx = ConversationContext()
        assert InterpretationGenerator().generate(ctx.cumulative_parse(), report) == []
