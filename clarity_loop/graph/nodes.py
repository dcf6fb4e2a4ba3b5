"""LangGraph nodes for one clarification turn.

Each node:
    - Receives the full TurnState
    - Returns a partial dict update
    - Mutates nothing but the ConversationContext carried in the state

The components each node needs (resolver, analyzer, generators,
synthesizer) are injected through ``make_*`` factories so the graph
itself holds no configuration.
"""

from __future__ import annotations

import logging

from clarity_loop.core.analyzer import ClarityAnalyzer
from clarity_loop.core.interpretations import InterpretationGenerator
from clarity_loop.core.questions import QuestionGenerator
from clarity_loop.core.resolution import ResponseResolver
from clarity_loop.core.synthesizer import IntentSynthesizer
from clarity_loop.domain.conversation import Turn
from clarity_loop.domain.enums import ConversationState, Speaker, TurnKind
from clarity_loop.explain.render import (
    render_capped,
    render_interpretation,
    render_question,
    render_refusal,
    render_synthesis,
)
from clarity_loop.graph.state import TurnState

logger = logging.getLogger(__name__)


def _system_turn(text: str, kind: TurnKind, ref_id: str | None = None) -> Turn:
    return Turn(speaker=Speaker.SYSTEM, text=text, kind=kind, ref_id=ref_id)


# ── 1. resolve_response ─────────────────────────────────────────────────────

def make_resolve_response(resolver: ResponseResolver):
    """Settle open issues from the user's response before re-analysis."""

    def resolve_response(state: TurnState) -> dict:
        if state.get("initial", False):
            return {"resolved_ids": []}
        resolved = resolver.apply(state["parsed"], state["context"], state.get("answers"))
        return {"resolved_ids": resolved}

    return resolve_response


# ── 2. analyze_clarity ──────────────────────────────────────────────────────

def make_analyze_clarity(analyzer: ClarityAnalyzer):

    def analyze_clarity(state: TurnState) -> dict:
        ctx = state["context"]
        ctx.state = ConversationState.ANALYZING
        report = analyzer.analyze(state["parsed"], ctx)
        ctx.merge_issues(report.issues)
        logger.debug(
            "Context %s: score=%.1f sufficient=%s open=%d",
            ctx.id, report.score, report.sufficient, len(report.unresolved),
        )
        return {"report": report}

    return analyze_clarity


# ── 3. route_turn ───────────────────────────────────────────────────────────

def route_turn(state: TurnState) -> str:
    """Conditional edge: synthesize, cap, or ask for clarification.

    A sufficient report always wins, even on the last allowed iteration.
    """
    if state["report"].sufficient:
        return "synthesize"
    if state["context"].iteration_count > state.get("max_iterations", 10):
        return "cap"
    return "clarify"


# ── 4a. synthesize_intent ───────────────────────────────────────────────────

def make_synthesize_intent(synthesizer: IntentSynthesizer):

    def synthesize_intent(state: TurnState) -> dict:
        ctx = state["context"]
        ctx.state = ConversationState.SUFFICIENT
        result = synthesizer.synthesize(ctx)
        turn = _system_turn(render_synthesis(result), TurnKind.INTENT)
        ctx.append_turn(turn)
        ctx.state = ConversationState.INTENT_EMITTED
        logger.info("Context %s: intent emitted after %d iteration(s)", ctx.id, ctx.iteration_count)
        return {"synthesis": result, "questions": [], "interpretations": [], "new_turns": [turn]}

    return synthesize_intent


# ── 4b. cap_conversation ────────────────────────────────────────────────────

def make_cap_conversation(synthesizer: IntentSynthesizer):

    def cap_conversation(state: TurnState) -> dict:
        ctx = state["context"]
        result = synthesizer.synthesize(ctx)
        turn = _system_turn(render_capped(state["report"]), TurnKind.REFUSAL)
        ctx.append_turn(turn)
        ctx.state = ConversationState.CAPPED
        logger.info(
            "Context %s: capped at iteration %d with %d open issue(s)",
            ctx.id, ctx.iteration_count, len(state["report"].unresolved),
        )
        return {"synthesis": result, "questions": [], "interpretations": [], "new_turns": [turn]}

    return cap_conversation


# ── 4c. offer_clarifications ────────────────────────────────────────────────

def make_offer_clarifications(
    question_generator: QuestionGenerator,
    interpretation_generator: InterpretationGenerator,
):

    def offer_clarifications(state: TurnState) -> dict:
        ctx = state["context"]
        report = state["report"]

        questions = question_generator.generate(report, ctx)
        ctx.record_questions(questions)

        known = set(ctx.interpretations)
        interpretations = [
            i for i in interpretation_generator.generate(ctx.cumulative_parse(), report)
            if i.id not in known
        ]
        ctx.offer_interpretations(interpretations)

        turns: list[Turn] = []
        if state.get("initial", False):
            turns.append(_system_turn(render_refusal(report), TurnKind.REFUSAL))
        turns.extend(_system_turn(render_question(q), TurnKind.QUESTION, q.id) for q in questions)
        turns.extend(
            _system_turn(render_interpretation(i), TurnKind.INTERPRETATION, i.id)
            for i in interpretations
        )
        for turn in turns:
            ctx.append_turn(turn)

        if state.get("initial", False):
            ctx.state = ConversationState.REFUSING
        elif interpretations:
            ctx.state = ConversationState.INTERPRETATION_OFFERED
        else:
            ctx.state = ConversationState.QUESTIONING

        logger.info(
            "Context %s: %s (%d question(s), %d interpretation(s))",
            ctx.id, ctx.state.value, len(questions), len(interpretations),
        )
        return {
            "questions": questions,
            "interpretations": interpretations,
            "synthesis": None,
            "new_turns": turns,
        }

    return offer_clarifications
