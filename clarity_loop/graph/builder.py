"""Graph builder — constructs the LangGraph turn topology.

Topology:

    START → resolve_response → analyze_clarity → route_turn
               ├── "synthesize" → synthesize_intent     → END
               ├── "cap"        → cap_conversation      → END
               └── "clarify"    → offer_clarifications  → END

One graph run processes exactly one inbound turn.  The graph is compiled
once and invoked for every turn of every conversation.
"""

from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from clarity_loop.core.analyzer import ClarityAnalyzer
from clarity_loop.core.interpretations import InterpretationGenerator
from clarity_loop.core.questions import QuestionGenerator
from clarity_loop.core.resolution import ResponseResolver
from clarity_loop.core.synthesizer import IntentSynthesizer
from clarity_loop.graph.nodes import (
    make_analyze_clarity,
    make_cap_conversation,
    make_offer_clarifications,
    make_resolve_response,
    make_synthesize_intent,
    route_turn,
)
from clarity_loop.graph.state import TurnState


def build_turn_graph(
    resolver: ResponseResolver,
    analyzer: ClarityAnalyzer,
    question_generator: QuestionGenerator,
    interpretation_generator: InterpretationGenerator,
    synthesizer: IntentSynthesizer,
):
    """Construct and compile the turn graph.

    Returns:
        A compiled LangGraph application taking and returning TurnState.
    """
    graph = StateGraph(TurnState)

    # ── Register nodes ───────────────────────────────────────────────────
    graph.add_node("resolve_response", make_resolve_response(resolver))
    graph.add_node("analyze_clarity", make_analyze_clarity(analyzer))
    graph.add_node("synthesize_intent", make_synthesize_intent(synthesizer))
    graph.add_node("cap_conversation", make_cap_conversation(synthesizer))
    graph.add_node(
        "offer_clarifications",
        make_offer_clarifications(question_generator, interpretation_generator),
    )

    # ── Edges ────────────────────────────────────────────────────────────
    graph.add_edge(START, "resolve_response")
    graph.add_edge("resolve_response", "analyze_clarity")

    # ── Conditional exit ─────────────────────────────────────────────────
    graph.add_conditional_edges(
        "analyze_clarity",
        route_turn,
        {
            "synthesize": "synthesize_intent",
            "cap": "cap_conversation",
            "clarify": "offer_clarifications",
        },
    )
    graph.add_edge("synthesize_intent", END)
    graph.add_edge("cap_conversation", END)
    graph.add_edge("offer_clarifications", END)

    return graph.compile()
