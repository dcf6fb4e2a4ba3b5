"""TurnState — the sole state object that turn-graph nodes read and write.

Every node receives the full state and returns a partial update.  The
ConversationContext carried in ``context`` is the one object nodes are
allowed to mutate; it is owned by the turn for the duration of the run.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from clarity_loop.domain.conversation import ConversationContext, Turn
from clarity_loop.domain.intent import SynthesisResult
from clarity_loop.domain.question import Interpretation, Question
from clarity_loop.domain.report import ClarityReport
from clarity_loop.domain.request import ParsedRequest


class TurnState(TypedDict, total=False):
    """LangGraph state for one inbound turn.

    Fields:
        context: The conversation being advanced.
        parsed: Parse of the inbound text.
        answers: Targeted answers keyed by question id.
        initial: True for the opening request of a conversation.
        max_iterations: Iteration budget; exceeding it caps the conversation.
        resolved_ids: Issue ids settled by this turn's response.
        report: ClarityReport for the context after this turn.
        questions: Questions emitted on this turn.
        interpretations: Interpretations newly offered on this turn.
        synthesis: Final or partial intent, on terminal turns.
        new_turns: System turns appended on this turn.
    """

    context: ConversationContext
    parsed: ParsedRequest
    answers: dict[str, str]
    initial: bool
    max_iterations: int

    resolved_ids: list[str]
    report: ClarityReport
    questions: list[Question]
    interpretations: list[Interpretation]
    synthesis: Optional[SynthesisResult]
    new_turns: list[Turn]
