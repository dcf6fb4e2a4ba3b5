"""ConversationContext — the single mutable state of one clarification session.

A context is created on the first request and mutated once per inbound
turn: the turn is appended, issue states are merged, and the iteration
counter advances.  Issues are append-and-update only, so the full
resolution history stays available for synthesis.

Thread-safety note:
    A context is only ever mutated by its own orchestration step, while
    the ConversationStore lock is held.  It is not itself locked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import ConversationState, Mode, Speaker, TurnKind
from clarity_loop.domain.issue import Issue, current_value
from clarity_loop.domain.question import Interpretation, Question
from clarity_loop.domain.request import ParsedRequest, Request, merge_parses
from clarity_loop.foundation.clock import utc_now
from clarity_loop.foundation.identifiers import new_id


class Turn(BaseModel):
    """Append-only record of one utterance in the conversation."""

    speaker: Speaker
    text: str
    kind: TurnKind
    timestamp: datetime = Field(default_factory=utc_now)
    ref_id: Optional[str] = Field(
        default=None,
        description="Question or interpretation id this turn carries, if any",
    )

    model_config = {"frozen": True}


class ResolutionEvent(BaseModel):
    """Audit record of one explicit resolution step."""

    issue_id: str
    iteration: int
    how: str
    value: Optional[str] = None

    model_config = {"frozen": True}


class ConversationContext:
    """Mutable per-session state, exclusively owned by its orchestrator step."""

    __slots__ = (
        "id",
        "mode",
        "state",
        "created_at",
        "last_updated",
        "iteration_count",
        "selected_interpretation",
        "asked_question_ids",
        "_turns",
        "_issues",
        "_requests",
        "_parses",
        "_pending_questions",
        "_ask_rounds",
        "_interpretations",
        "_resolutions",
    )

    def __init__(self, mode: Mode = Mode.CHALLENGE, context_id: str | None = None) -> None:
        now = utc_now()
        self.id: str = context_id or new_id()
        self.mode: Mode = mode
        self.state: ConversationState = ConversationState.START
        self.created_at: datetime = now
        self.last_updated: datetime = now
        self.iteration_count: int = 0
        self.selected_interpretation: Optional[str] = None
        self.asked_question_ids: set[str] = set()
        self._turns: list[Turn] = []
        self._issues: dict[str, Issue] = {}
        self._requests: list[Request] = []
        self._parses: list[ParsedRequest] = []
        self._pending_questions: dict[str, Question] = {}
        self._ask_rounds: dict[str, int] = {}
        self._interpretations: dict[str, Interpretation] = {}
        self._resolutions: list[ResolutionEvent] = []

    # ── Mutation ─────────────────────────────────────────────────────────

    def record_inbound(self, request: Request, parsed: ParsedRequest, kind: TurnKind) -> Turn:
        """Append a user turn and its parse, and advance the iteration counter."""
        turn = Turn(speaker=Speaker.USER, text=request.raw_text, kind=kind,
                    timestamp=request.submitted_at)
        self._turns.append(turn)
        self._requests.append(request)
        self._parses.append(parsed)
        self.iteration_count += 1
        self._touch()
        return turn

    def append_turn(self, turn: Turn) -> None:
        self._turns.append(turn)
        self._touch()

    def merge_issues(self, issues: Iterable[Issue]) -> None:
        """Replace known issue states by id; unseen issues are added.

        An unseen issue that arrives already resolved was settled by the
        request text itself and is logged as "stated".
        """
        for issue in issues:
            if issue.id not in self._issues and issue.resolved:
                self._resolutions.append(ResolutionEvent(
                    issue_id=issue.id, iteration=self.iteration_count,
                    how="stated", value=current_value(issue),
                ))
            self._issues[issue.id] = issue
        self._touch()

    def update_issue(self, issue: Issue, how: str, value: str | None = None) -> None:
        """Store a resolved (or reopened) issue and log the resolution step."""
        self._issues[issue.id] = issue
        self._resolutions.append(ResolutionEvent(
            issue_id=issue.id, iteration=self.iteration_count, how=how, value=value,
        ))
        self._touch()

    def record_questions(self, questions: Iterable[Question]) -> None:
        """Mark *questions* as asked.  They become the pending set."""
        self._pending_questions = {}
        for q in questions:
            self.asked_question_ids.add(q.id)
            self._ask_rounds[q.issue_id] = self._ask_rounds.get(q.issue_id, 0) + 1
            self._pending_questions[q.id] = q
        self._touch()

    def offer_interpretations(self, interpretations: Iterable[Interpretation]) -> None:
        for interp in interpretations:
            self._interpretations[interp.id] = interp
        self._touch()

    def _touch(self) -> None:
        self.last_updated = utc_now()

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def turns(self) -> list[Turn]:
        """Read-only view of the turn history."""
        return list(self._turns)

    @property
    def issues(self) -> dict[str, Issue]:
        return dict(self._issues)

    @property
    def requests(self) -> list[Request]:
        return list(self._requests)

    @property
    def parses(self) -> list[ParsedRequest]:
        return list(self._parses)

    @property
    def pending_questions(self) -> dict[str, Question]:
        """Questions asked on the most recent system turn."""
        return dict(self._pending_questions)

    @property
    def interpretations(self) -> dict[str, Interpretation]:
        return dict(self._interpretations)

    @property
    def resolutions(self) -> list[ResolutionEvent]:
        return list(self._resolutions)

    def ask_rounds(self, issue_id: str) -> int:
        """How many times a question about *issue_id* has been asked."""
        return self._ask_rounds.get(issue_id, 0)

    def cumulative_parse(self) -> ParsedRequest:
        return merge_parses(self._parses)

    def issue(self, issue_id: str) -> Optional[Issue]:
        return self._issues.get(issue_id)

    @property
    def selected(self) -> Optional[Interpretation]:
        if self.selected_interpretation is None:
            return None
        return self._interpretations.get(self.selected_interpretation)

    @property
    def is_closed(self) -> bool:
        return self.state.is_terminal

    # ── Summary ──────────────────────────────────────────────────────────

    def summary(self) -> dict:
        """Lightweight summary suitable for acknowledgements and logging."""
        return {
            "context_id": self.id,
            "mode": self.mode.value,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
            "iteration_count": self.iteration_count,
            "turn_count": len(self._turns),
            "open_issues": sorted(i.id for i in self._issues.values() if not i.resolved),
            "resolved_issues": sorted(i.id for i in self._issues.values() if i.resolved),
            "selected_interpretation": self.selected_interpretation,
        }

    def __repr__(self) -> str:
        return (
            f"ConversationContext(id={self.id}, "
            f"mode={self.mode.value}, "
            f"state={self.state.value}, "
            f"iteration={self.iteration_count})"
        )
