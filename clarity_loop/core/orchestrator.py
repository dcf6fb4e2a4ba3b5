"""ConversationOrchestrator — the turn-by-turn clarification state machine.

States:

    START → ANALYZING → {REFUSING, QUESTIONING, INTERPRETATION_OFFERED}
          → ANALYZING (loop) → SUFFICIENT → INTENT_EMITTED (terminal)

with the escape edges ANALYZING → CAPPED once the iteration budget is
exceeded, and → RESTARTED when the caller discards the conversation.

Each inbound turn is validated, parsed by the text-understanding
provider, recorded on the context, and then run through the turn graph.
Only InputError and ContextLost ever reach the caller; provider failures
degrade to a low-confidence parse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Union

from clarity_loop.config import Settings, settings
from clarity_loop.core.analyzer import ClarityAnalyzer
from clarity_loop.core.interpretations import InterpretationGenerator
from clarity_loop.core.questions import QuestionGenerator
from clarity_loop.core.resolution import ResponseResolver
from clarity_loop.core.synthesizer import IntentSynthesizer
from clarity_loop.domain.conversation import ConversationContext, Turn
from clarity_loop.domain.enums import ConversationState, Mode, TurnKind
from clarity_loop.domain.intent import SynthesisResult
from clarity_loop.domain.question import Interpretation, Question
from clarity_loop.domain.report import ClarityReport, ModeThresholds, SeverityWeights
from clarity_loop.domain.request import ParsedRequest, Request
from clarity_loop.errors import ContextLost, InputError
from clarity_loop.graph.builder import build_turn_graph
from clarity_loop.graph.runner import run_turn
from clarity_loop.knowledge.tables import KnowledgeTables, load_tables
from clarity_loop.providers.base import TextUnderstandingProvider
from clarity_loop.providers.chain import ProviderChain
from clarity_loop.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

Provider = Union[TextUnderstandingProvider, ProviderChain]


@dataclass(frozen=True)
class TurnResult:
    """What one inbound turn produced."""

    context: ConversationContext
    new_turns: list[Turn]
    state: ConversationState
    report: Optional[ClarityReport] = None
    questions: list[Question] = field(default_factory=list)
    interpretations: list[Interpretation] = field(default_factory=list)
    synthesis: Optional[SynthesisResult] = None


class ConversationOrchestrator:
    """Owns conversation identity, mode and iteration budget.

    Args:
        provider: Text-understanding provider (or chain of providers).
        store: Conversation store; a fresh in-memory one by default.
        tables: Knowledge tables; loaded from ``config.knowledge_path``
                (or the built-in defaults) when omitted.
        config: Settings to read parameters from.
    """

    def __init__(
        self,
        provider: Provider,
        store: ConversationStore | None = None,
        tables: KnowledgeTables | None = None,
        config: Settings | None = None,
    ) -> None:
        cfg = config or settings
        tables = tables or load_tables(cfg.knowledge_path)
        thresholds = {
            Mode.CHALLENGE: ModeThresholds.challenge(cfg.challenge_sufficiency_floor),
            Mode.BUILD: ModeThresholds.build(cfg.build_sufficiency_floor),
        }
        weights = SeverityWeights(
            critical=cfg.weight_critical,
            important=cfg.weight_important,
            minor=cfg.weight_minor,
        )

        self._provider = provider
        self._store = store or ConversationStore(
            ttl=timedelta(minutes=cfg.conversation_ttl_minutes),
        )
        self._max_request_length = cfg.max_request_length
        self._max_iterations = cfg.max_iterations

        self._resolver = ResponseResolver(tables)
        self._graph = build_turn_graph(
            resolver=self._resolver,
            analyzer=ClarityAnalyzer(tables, weights, thresholds),
            question_generator=QuestionGenerator(
                tables,
                max_questions=cfg.max_questions,
                age_penalty=cfg.question_age_penalty,
                age_penalty_cap=cfg.question_age_penalty_cap,
                thresholds=thresholds,
            ),
            interpretation_generator=InterpretationGenerator(tables),
            synthesizer=IntentSynthesizer(tables),
        )

    @property
    def store(self) -> ConversationStore:
        return self._store

    # ── Public API ───────────────────────────────────────────────────────

    async def start_conversation(self, raw_text: str, mode: Mode = Mode.CHALLENGE) -> TurnResult:
        """Open a conversation with its initial request.

        Raises:
            InputError: The text is empty or too long.  No conversation is
                created and the provider is not called.
        """
        text = self._validate(raw_text)
        ctx = await self._store.create(mode)
        async with self._store.session(ctx.id):
            return await self._run(ctx, text, TurnKind.REQUEST, initial=True)

    async def submit_response(
        self,
        context_id: str,
        raw_text: str,
        answers: dict[str, str] | None = None,
    ) -> TurnResult:
        """Advance a conversation with the user's next response.

        *answers* optionally maps question ids to answer text; when the
        free text is blank it is assembled from the answers.

        Raises:
            InputError: The text is empty or too long.
            ContextLost: The conversation is unknown, expired, or closed.
        """
        if not (raw_text or "").strip() and answers:
            raw_text = "\n".join(a for a in answers.values() if a and a.strip())
        text = self._validate(raw_text)
        ctx = await self._store.get(context_id)
        async with self._store.session(context_id):
            if ctx.is_closed:
                raise ContextLost(context_id, "closed")
            return await self._run(ctx, text, TurnKind.RESPONSE, answers=answers)

    async def select_interpretation(self, context_id: str, interpretation_id: str) -> TurnResult:
        """Commit to one offered interpretation and re-analyze.

        Raises:
            InputError: The interpretation was never offered on this
                conversation.
            ContextLost: The conversation is unknown, expired, or closed.
        """
        ctx = await self._store.get(context_id)
        async with self._store.session(context_id):
            if ctx.is_closed:
                raise ContextLost(context_id, "closed")
            interp = ctx.interpretations.get(interpretation_id)
            if interp is None:
                raise InputError(InputError.UNKNOWN_INTERPRETATION, interpretation_id)
            ctx.selected_interpretation = interp.id
            self._resolver.resolve_by_selection(interp, ctx)
            logger.info("Context %s: selected interpretation '%s'", ctx.id, interp.title)
            return await self._run(ctx, interp.title, TurnKind.RESPONSE)

    async def get_history(self, context_id: str) -> list[Turn]:
        """Ordered turns of an open or archived conversation."""
        ctx = await self._store.get_any(context_id)
        return ctx.turns

    async def reset_conversation(self, context_id: str) -> ConversationContext:
        """Discard a conversation and return a fresh empty one in the same mode."""
        old = await self._store.get(context_id)
        async with self._store.session(context_id):
            await self._store.discard(context_id)
        logger.info("Context %s restarted", context_id)
        return await self._store.create(old.mode)

    # ── Internals ────────────────────────────────────────────────────────

    def _validate(self, raw_text: str | None) -> str:
        text = (raw_text or "").strip()
        if not text:
            raise InputError(InputError.EMPTY)
        if len(text) > self._max_request_length:
            raise InputError(
                InputError.TOO_LONG,
                f"{len(text)} characters exceeds the limit of {self._max_request_length}",
            )
        return text

    def _parse(self, text: str) -> ParsedRequest:
        try:
            return self._provider.parse(text)
        except Exception as exc:
            logger.warning("Parse degraded, continuing heuristically: %s", exc)
            return ParsedRequest.degraded_from(text)

    async def _run(
        self,
        ctx: ConversationContext,
        text: str,
        kind: TurnKind,
        *,
        initial: bool = False,
        answers: dict[str, str] | None = None,
    ) -> TurnResult:
        request = Request(raw_text=text)
        parsed = self._parse(text)
        user_turn = ctx.record_inbound(request, parsed, kind)

        final = run_turn(
            self._graph, ctx, parsed,
            answers=answers, initial=initial, max_iterations=self._max_iterations,
        )
        await self._store.save(ctx)

        return TurnResult(
            context=ctx,
            new_turns=[user_turn, *final.get("new_turns", [])],
            state=ctx.state,
            report=final.get("report"),
            questions=list(final.get("questions", [])),
            interpretations=list(final.get("interpretations", [])),
            synthesis=final.get("synthesis"),
        )
