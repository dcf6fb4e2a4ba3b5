"""Tests for the ConversationOrchestrator: validation, lifecycle and full runs."""

from unittest.mock import MagicMock

import pytest

from clarity_loop.config import Settings
from clarity_loop.core.orchestrator import ConversationOrchestrator
from clarity_loop.core.questions import FALLBACK_QUESTIONS
from clarity_loop.domain.enums import ConversationState, Mode, Speaker, TurnKind
from clarity_loop.errors import ContextLost, InputError
from clarity_loop.providers.keyword import KeywordProvider

from tests.test_analyzer import SCENARIO
from tests.test_synthesizer import FINAL_ANSWER, STATED_UP_FRONT


# ── Helpers ──────────────────────────────────────────────────────────────────

QUALITY_FOCUSED = "interp:contradiction:engagement+quality:quality"


def _orchestrator(**kw) -> ConversationOrchestrator:
    return ConversationOrchestrator(KeywordProvider(), **kw)


@pytest.fixture
def orchestrator() -> ConversationOrchestrator:
    return _orchestrator()


class TestStart:
    @pytest.mark.asyncio
    async def test_vague_request_is_refused(self, orchestrator: ConversationOrchestrator) -> None:
        result = await orchestrator.start_conversation(SCENARIO)
        assert result.state == ConversationState.REFUSING
        assert result.context.iteration_count == 1
        assert 1 <= len(result.questions) <= 5

        refusal = next(t for t in result.new_turns if t.kind == TurnKind.REFUSAL)
        assert "'fair' is not defined" in refusal.text
        assert "no boundary constraint was given" in refusal.text

    @pytest.mark.asyncio
    async def test_user_turn_comes_first(self, orchestrator: ConversationOrchestrator) -> None:
        result = await orchestrator.start_conversation(SCENARIO)
        first = result.new_turns[0]
        assert first.speaker == Speaker.USER
        assert first.kind == TurnKind.REQUEST
        assert first.text == SCENARIO
        assert all(t.speaker == Speaker.SYSTEM for t in result.new_turns[1:])

    @pytest.mark.asyncio
    async def test_build_mode_can_finish_on_first_turn(self, orchestrator: ConversationOrchestrator) -> None:
        result = await orchestrator.start_conversation(
            "Build a ranking system. Only EU profiles. Accuracy above 90%.", Mode.BUILD,
        )
        assert result.state == ConversationState.INTENT_EMITTED
        assert result.synthesis is not None
        assert result.new_turns[-1].kind == TurnKind.INTENT

    @pytest.mark.asyncio
    async def test_constraints_stated_up_front_reach_the_intent(
        self, orchestrator: ConversationOrchestrator,
    ) -> None:
        result = await orchestrator.start_conversation(STATED_UP_FRONT)
        assert result.state == ConversationState.INTENT_EMITTED
        intent = result.synthesis.intent
        assert {c.category for c in intent.constraints} == {
            "performance", "scale", "boundary", "quality",
        }
        assert intent.scope.boundaries == ["only the eu region"]


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_text_never_reaches_provider(self, text: str) -> None:
        provider = MagicMock()
        orchestrator = ConversationOrchestrator(provider)
        with pytest.raises(InputError) as exc:
            await orchestrator.start_conversation(text)
        assert exc.value.reason == InputError.EMPTY
        provider.parse.assert_not_called()
        assert await orchestrator.store.active_count() == 0

    @pytest.mark.asyncio
    async def test_too_long_text_rejected(self) -> None:
        orchestrator = _orchestrator(config=Settings(max_request_length=10))
        with pytest.raises(InputError) as exc:
            await orchestrator.start_conversation("Build a fair user ranking system")
        assert exc.value.reason == InputError.TOO_LONG

    @pytest.mark.asyncio
    async def test_empty_response_rejected(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        with pytest.raises(InputError):
            await orchestrator.submit_response(start.context.id, "  ")
        assert start.context.iteration_count == 1


class TestConversation:
    @pytest.mark.asyncio
    async def test_full_scenario(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        cid = start.context.id

        second = await orchestrator.submit_response(cid, "engagement and quality")
        assert second.state == ConversationState.INTERPRETATION_OFFERED
        assert QUALITY_FOCUSED in {i.id for i in second.interpretations}

        third = await orchestrator.submit_response(cid, FINAL_ANSWER)
        assert third.state == ConversationState.INTENT_EMITTED
        assert third.report.sufficient
        assert not third.synthesis.is_partial
        assert third.synthesis.intent.resolved_tradeoffs[0].chosen_option == "quality"
        assert third.new_turns[0].kind == TurnKind.RESPONSE

    @pytest.mark.asyncio
    async def test_targeted_answers(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        qid = "q:missing_constraint:boundary:constraint"
        assert qid in {q.id for q in start.questions}

        result = await orchestrator.submit_response(start.context.id, "", answers={qid: "EU only"})
        assert result.new_turns[0].text == "EU only"
        assert result.context.issue("missing_constraint:boundary").value == "EU only"

    @pytest.mark.asyncio
    async def test_select_interpretation_settles_tradeoff(
        self, orchestrator: ConversationOrchestrator,
    ) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        cid = start.context.id
        await orchestrator.submit_response(cid, "engagement and quality")

        result = await orchestrator.select_interpretation(cid, QUALITY_FOCUSED)
        ctx = result.context
        assert ctx.selected_interpretation == QUALITY_FOCUSED
        assert ctx.issue("contradiction:engagement+quality").tradeoff.chosen_option == "quality"
        assert not ctx.is_closed

    @pytest.mark.asyncio
    async def test_unknown_interpretation_rejected(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        with pytest.raises(InputError) as exc:
            await orchestrator.select_interpretation(start.context.id, "interp:nope")
        assert exc.value.reason == InputError.UNKNOWN_INTERPRETATION

    @pytest.mark.asyncio
    async def test_cap_yields_partial_intent(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        result = start
        for _ in range(10):
            result = await orchestrator.submit_response(start.context.id, "hmm")
        assert result.state == ConversationState.CAPPED
        assert result.context.iteration_count == 11
        assert result.synthesis.is_partial
        assert result.questions == []

    @pytest.mark.asyncio
    async def test_provider_failure_degrades_to_fallback_questions(self) -> None:
        provider = MagicMock()
        provider.parse.side_effect = RuntimeError("model unavailable")
        orchestrator = ConversationOrchestrator(provider)

        result = await orchestrator.start_conversation(SCENARIO)
        assert result.report.low_confidence
        assert not result.report.sufficient
        assert [q.text for q in result.questions] == list(FALLBACK_QUESTIONS)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_unknown_context(self, orchestrator: ConversationOrchestrator) -> None:
        with pytest.raises(ContextLost) as exc:
            await orchestrator.submit_response("missing", "hello")
        assert exc.value.reason == "unknown"

    @pytest.mark.asyncio
    async def test_closed_context_keeps_history(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(
            "Build a ranking system. Only EU profiles. Accuracy above 90%.", Mode.BUILD,
        )
        cid = start.context.id
        with pytest.raises(ContextLost) as exc:
            await orchestrator.submit_response(cid, "one more thing")
        assert exc.value.reason == "closed"

        history = await orchestrator.get_history(cid)
        assert history[0].speaker == Speaker.USER
        assert history[-1].kind == TurnKind.INTENT

    @pytest.mark.asyncio
    async def test_history_is_ordered(self, orchestrator: ConversationOrchestrator) -> None:
        start = await orchestrator.start_conversation(SCENARIO)
        second = await orchestrator.submit_response(start.context.id, "engagement and quality")
        history = await orchestrator.get_history(start.context.id)
        assert history == [*start.new_turns, *second.new_turns]

    @pytest.mark.asyncio
    async def test_reset_starts_fresh_in_same_mode(self) -> None:
        orchestrator = _orchestrator()
        start = await orchestrator.start_conversation(SCENARIO, Mode.BUILD)
        old_id = start.context.id

        fresh = await orchestrator.reset_conversation(old_id)
        assert fresh.id != old_id
        assert fresh.mode == Mode.BUILD
        assert fresh.turns == []
        assert start.context.state == ConversationState.RESTARTED
        with pytest.raises(ContextLost):
            await orchestrator.submit_response(old_id, "hello")
