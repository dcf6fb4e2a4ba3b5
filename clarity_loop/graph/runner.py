"""Graph runner — clean interface for invoking the turn graph.

Usage:
    from clarity_loop.graph.runner import run_turn

    final = run_turn(graph, ctx, parsed, initial=True)

The runner seeds the initial TurnState, invokes LangGraph, and returns the
final state.  The context is mutated in place by the graph's nodes.
"""

from __future__ import annotations

import logging
from typing import Any

from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.request import ParsedRequest
from clarity_loop.graph.state import TurnState

logger = logging.getLogger(__name__)


def run_turn(
    graph: Any,
    ctx: ConversationContext,
    parsed: ParsedRequest,
    *,
    answers: dict[str, str] | None = None,
    initial: bool = False,
    max_iterations: int = 10,
) -> TurnState:
    """Run one inbound turn through the compiled graph.

    Args:
        graph: Compiled graph from ``build_turn_graph``.
        ctx: Conversation the turn belongs to; its inbound turn must
             already be recorded.
        parsed: Parse of the inbound text.
        answers: Targeted answers keyed by question id.
        initial: True for the opening request.
        max_iterations: Iteration budget before the conversation is capped.

    Returns:
        Final TurnState with report, questions, interpretations, synthesis
        and the system turns appended on this turn.
    """
    initial_state: TurnState = {
        "context": ctx,
        "parsed": parsed,
        "answers": dict(answers or {}),
        "initial": initial,
        "max_iterations": max_iterations,
        "resolved_ids": [],
        "questions": [],
        "interpretations": [],
        "synthesis": None,
        "new_turns": [],
    }

    logger.debug("Running turn graph for context %s (iteration %d)", ctx.id, ctx.iteration_count)
    final_state = graph.invoke(initial_state)

    logger.debug(
        "Turn complete: context=%s state=%s resolved=%d questions=%d interpretations=%d",
        ctx.id,
        ctx.state.value,
        len(final_state.get("resolved_ids", [])),
        len(final_state.get("questions", [])),
        len(final_state.get("interpretations", [])),
    )
    return final_state
