"""REST endpoints for clarification conversations.

Paths:
    POST /api/conversations                              open a conversation
    POST /api/conversations/{id}/responses               submit a response
    POST /api/conversations/{id}/interpretation          select an interpretation
    GET  /api/conversations/{id}/history                 ordered turns
    POST /api/conversations/{id}/reset                   discard and start over

The router only translates between JSON and the orchestrator.  InputError
maps to 422 and ContextLost to 404 with a restart hint.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from clarity_loop.core.orchestrator import ConversationOrchestrator, TurnResult
from clarity_loop.domain.enums import Mode
from clarity_loop.errors import ContextLost, InputError

logger = logging.getLogger(__name__)


class StartBody(BaseModel):
    text: str
    mode: Mode = Mode.CHALLENGE


class ResponseBody(BaseModel):
    text: str = ""
    answers: Optional[dict[str, str]] = Field(
        default=None,
        description="Answers keyed by question id",
    )


class SelectionBody(BaseModel):
    interpretation_id: str


def _turn_payload(result: TurnResult) -> dict[str, Any]:
    report = result.report
    return {
        "context": result.context.summary(),
        "state": result.state.value,
        "new_turns": [t.model_dump(mode="json") for t in result.new_turns],
        "report": report.model_dump(mode="json") if report is not None else None,
        "questions": [q.model_dump(mode="json") for q in result.questions],
        "interpretations": [i.model_dump(mode="json") for i in result.interpretations],
        "synthesis": (
            result.synthesis.model_dump(mode="json") if result.synthesis is not None else None
        ),
    }


def _input_error(exc: InputError) -> HTTPException:
    return HTTPException(status_code=422, detail={"error": exc.reason, "detail": exc.detail})


def _context_lost(exc: ContextLost) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": "context_lost", "reason": exc.reason, "restart": "/api/conversations"},
    )


def create_conversation_router(orchestrator: ConversationOrchestrator) -> APIRouter:
    """Factory that wires the conversation endpoints to an orchestrator."""

    router = APIRouter(prefix="/api", tags=["conversations"])

    @router.post("/conversations")
    async def start_conversation(body: StartBody) -> dict[str, Any]:
        try:
            result = await orchestrator.start_conversation(body.text, body.mode)
        except InputError as exc:
            raise _input_error(exc)
        return _turn_payload(result)

    @router.post("/conversations/{context_id}/responses")
    async def submit_response(context_id: str, body: ResponseBody) -> dict[str, Any]:
        try:
            result = await orchestrator.submit_response(context_id, body.text, body.answers)
        except InputError as exc:
            raise _input_error(exc)
        except ContextLost as exc:
            raise _context_lost(exc)
        return _turn_payload(result)

    @router.post("/conversations/{context_id}/interpretation")
    async def select_interpretation(context_id: str, body: SelectionBody) -> dict[str, Any]:
        try:
            result = await orchestrator.select_interpretation(context_id, body.interpretation_id)
        except InputError as exc:
            raise _input_error(exc)
        except ContextLost as exc:
            raise _context_lost(exc)
        return _turn_payload(result)

    @router.get("/conversations/{context_id}/history")
    async def get_history(context_id: str) -> dict[str, Any]:
        try:
            turns = await orchestrator.get_history(context_id)
        except ContextLost as exc:
            raise _context_lost(exc)
        return {
            "context_id": context_id,
            "turns": [t.model_dump(mode="json") for t in turns],
            "count": len(turns),
        }

    @router.post("/conversations/{context_id}/reset")
    async def reset_conversation(context_id: str) -> dict[str, Any]:
        try:
            ctx = await orchestrator.reset_conversation(context_id)
        except ContextLost as exc:
            raise _context_lost(exc)
        logger.info("Conversation %s reset as %s", context_id, ctx.id)
        return {"previous_context_id": context_id, "context": ctx.summary()}

    return router
