"""Tests for the REST conversation endpoints."""

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from clarity_loop.api.conversations import create_conversation_router
from clarity_loop.core.orchestrator import ConversationOrchestrator
from clarity_loop.providers.keyword import KeywordProvider

from tests.test_analyzer import SCENARIO


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = FastAPI()
    app.include_router(create_conversation_router(ConversationOrchestrator(KeywordProvider())))
    with TestClient(app) as test_client:
        yield test_client


def _start(client: TestClient, text: str = SCENARIO, mode: str = "challenge") -> dict:
    resp = client.post("/api/conversations", json={"text": text, "mode": mode})
    assert resp.status_code == 200
    return resp.json()


class TestStartEndpoint:
    def test_payload_shape(self, client: TestClient) -> None:
        body = _start(client)
        assert body["state"] == "refusing"
        assert body["context"]["iteration_count"] == 1
        assert body["new_turns"][0]["speaker"] == "user"
        assert body["report"]["sufficient"] is False
        assert body["questions"]
        assert body["synthesis"] is None

    def test_empty_text_is_422(self, client: TestClient) -> None:
        resp = client.post("/api/conversations", json={"text": "   "})
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "empty_request"

    def test_unknown_mode_is_422(self, client: TestClient) -> None:
        resp = client.post("/api/conversations", json={"text": SCENARIO, "mode": "yolo"})
        assert resp.status_code == 422


class TestResponseEndpoint:
    def test_response_advances_conversation(self, client: TestClient) -> None:
        cid = _start(client)["context"]["context_id"]
        resp = client.post(
            f"/api/conversations/{cid}/responses", json={"text": "engagement and quality"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "interpretation_offered"
        assert len(body["interpretations"]) >= 2

    def test_answers_only(self, client: TestClient) -> None:
        cid = _start(client)["context"]["context_id"]
        qid = "q:missing_constraint:boundary:constraint"
        resp = client.post(f"/api/conversations/{cid}/responses", json={"answers": {qid: "EU only"}})
        assert resp.status_code == 200
        assert "missing_constraint:boundary" in resp.json()["context"]["resolved_issues"]

    def test_unknown_conversation_is_404(self, client: TestClient) -> None:
        resp = client.post("/api/conversations/nope/responses", json={"text": "hello"})
        assert resp.status_code == 404
        detail = resp.json()["detail"]
        assert detail["error"] == "context_lost"
        assert detail["reason"] == "unknown"
        assert detail["restart"] == "/api/conversations"


class TestInterpretationEndpoint:
    def test_select_offered_interpretation(self, client: TestClient) -> None:
        cid = _start(client)["context"]["context_id"]
        offered = client.post(
            f"/api/conversations/{cid}/responses", json={"text": "engagement and quality"},
        ).json()["interpretations"]

        resp = client.post(
            f"/api/conversations/{cid}/interpretation",
            json={"interpretation_id": offered[0]["id"]},
        )
        assert resp.status_code == 200
        assert resp.json()["context"]["selected_interpretation"] == offered[0]["id"]

    def test_unknown_interpretation_is_422(self, client: TestClient) -> None:
        cid = _start(client)["context"]["context_id"]
        resp = client.post(
            f"/api/conversations/{cid}/interpretation", json={"interpretation_id": "interp:nope"},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "unknown_interpretation"


class TestHistoryAndReset:
    def test_history(self, client: TestClient) -> None:
        started = _start(client)
        cid = started["context"]["context_id"]
        body = client.get(f"/api/conversations/{cid}/history").json()
        assert body["context_id"] == cid
        assert body["count"] == len(started["new_turns"])
        assert body["turns"][0]["text"] == SCENARIO

    def test_reset(self, client: TestClient) -> None:
        cid = _start(client, mode="build")["context"]["context_id"]
        resp = client.post(f"/api/conversations/{cid}/reset")
        assert resp.status_code == 200
        body = resp.json()
        assert body["previous_context_id"] == cid
        assert body["context"]["context_id"] != cid
        assert body["context"]["mode"] == "build"

        again = client.post(f"/api/conversations/{cid}/responses", json={"text": "hello"})
        assert again.status_code == 404
        assert again.json()["detail"]["reason"] == "closed"
