"""
Tests for the HTTP surface, driven through FastAPI's TestClient.

The app's lifespan uses a CoachCore already placed on app.state, so these
tests run against scripted providers and never touch the network.
"""

import base64
import json

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedProvider
from core import CoachCore
from inference import ProviderRouter
from main import app


@pytest.fixture
def core(registry, board):
    groq = ScriptedProvider("groq", reply="Keep your core tight and breathe out on the push.",
                            status=board)
    router = ProviderRouter([groq], registry, status=board)
    return CoachCore(registry, router, sweep_interval=0, plugins=["recovery"])


@pytest.fixture
def client(core):
    app.state.coach_core = core
    with TestClient(app) as c:
        yield c
    del app.state.coach_core


def _sse_events(body: str) -> list:
    lines = [line[len("data: "):] for line in body.splitlines() if line.startswith("data: ")]
    assert lines[-1] == "[DONE]"
    return [json.loads(line) for line in lines[:-1]]


class TestHealth:

    def test_health(self, client, core):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["coach_ready"] is True
        assert data["tools"] == len(core.registry)

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_public_config(self, client):
        data = client.get("/api/config").json()
        assert data["name"] == "Nimbus"
        assert "recovery" in data["plugins"]


class TestQuery:

    def test_tool_answer(self, client):
        resp = client.post("/api/coach/query",
                           json={"text": "generate a 45 minute strength workout with dumbbells"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["provider"] == "tools"
        assert data["tools_used"] == ["plan_workout"]
        assert data["intent"] == "planning"
        assert data["suggestions"]
        assert data["request_id"]
        assert data["conversation_id"] is None

    def test_provider_answer(self, client):
        data = client.post("/api/coach/query", json={"text": "any tips?"}).json()
        assert data["content"].startswith("Keep your core tight")

    def test_media_payload(self, client):
        media = base64.b64encode(b"\x89PNG fake").decode()
        resp = client.post("/api/coach/query", json={
            "media_base64": media,
            "domain_state": {"current_exercise": "squats"},
        })
        assert resp.status_code == 200
        assert resp.json()["tools_used"] == ["analyze_form"]

    def test_empty_request_rejected(self, client):
        resp = client.post("/api/coach/query", json={"text": "   "})
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidRequestError"

    def test_bad_base64_rejected(self, client):
        resp = client.post("/api/coach/query", json={"media_base64": "not base64!!"})
        assert resp.status_code == 422

    def test_timeout_bounds(self, client):
        resp = client.post("/api/coach/query", json={"text": "hi", "timeout": 0})
        assert resp.status_code == 422

    def test_not_ready(self, client, core):
        core._ready = False
        resp = client.post("/api/coach/query", json={"text": "hi"})
        assert resp.status_code == 503

    def test_stream(self, client, core):
        resp = client.post("/api/coach/query",
                           json={"text": "any tips?", "stream": True, "conversation_id": "s1"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(resp.text)
        chunks = [e["content"] for e in events if e["type"] == "chunk"]
        assert "".join(chunks) == "Keep your core tight and breathe out on the push."
        assert events[-1]["type"] == "complete"
        assert events[-1]["response"]["provider"] == "groq"
        assert len(core.store.get("s1").turns) == 1


class TestConversations:

    def test_summary_history_and_delete(self, client):
        client.post("/api/coach/query", json={"text": "I ate 2 eggs and toast",
                                              "conversation_id": "c1"})
        client.post("/api/coach/query", json={"text": "any tips?", "conversation_id": "c1"})

        summary = client.get("/api/conversations/c1/summary").json()
        assert summary["turn_count"] == 2
        assert summary["tools_used"] == ["analyze_nutrition"]

        history = client.get("/api/conversations/c1").json()
        assert [t["intent"] for t in history["turns"]] == ["nutrition", "general"]

        assert client.delete("/api/conversations/c1").json() == {"status": "deleted", "id": "c1"}
        assert client.delete("/api/conversations/c1").status_code == 404

    def test_unknown_conversation(self, client):
        assert client.get("/api/conversations/nope/summary").status_code == 404
        assert client.get("/api/conversations/nope").status_code == 404


class TestTools:

    def test_list(self, client):
        names = [t["function"]["name"] for t in client.get("/api/tools").json()["tools"]]
        assert "plan_workout" in names
        assert "recovery_optimizer" in names

    def test_execute(self, client):
        resp = client.post("/api/tools/plan_workout",
                           json={"params": {"goal": "endurance", "duration": 30}})
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["data"]["estimated_minutes"] <= 30

    def test_handler_failure_is_a_result(self, client):
        resp = client.post("/api/tools/lookup_exercise", json={"params": {"name": "moonwalk"}})
        assert resp.status_code == 200
        assert resp.json()["success"] is False

    def test_unknown_tool(self, client):
        assert client.post("/api/tools/nope", json={"params": {}}).status_code == 404

    def test_invalid_params(self, client):
        resp = client.post("/api/tools/plan_workout", json={"params": {"goal": "strength"}})
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "InvalidParametersError"


class TestProvidersAndPlugins:

    def test_providers(self, client):
        data = client.get("/api/providers").json()
        assert data["policy"] == "priority_with_penalty"
        [groq] = data["providers"]
        assert groq["provider_id"] == "groq"
        assert groq["model"] == "groq-model"
        assert groq["configured"] is True
        assert "api_key" not in groq

    def test_plugins(self, client):
        plugins = {p["id"]: p for p in client.get("/api/plugins").json()}
        assert plugins["recovery"]["tools"] == ["recovery_optimizer"]
