from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from insurance_agent.llm.streaming import ModelStreamChunk


def _events(body: str) -> List[Tuple[str, Dict[str, Any]]]:
    out = []
    for block in body.strip().split("\n\n"):
        lines = block.split("\n")
        out.append((lines[0][len("event: ") :], json.loads(lines[1][len("data: ") :])))
    return out


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, ctx, scripted_model):  # type: ignore[no-untyped-def]
    import insurance_agent.api.server as srv

    monkeypatch.setattr(srv.app.state, "tool_context", ctx, raising=False)
    model = scripted_model(
        [
            [ModelStreamChunk(kind="tool-call", call_id="c1", tool_name="getClaimStatus", args={"numSinistre": "SIN-2024-000101"})],
            [ModelStreamChunk(kind="text", text="Votre sinistre a été réglé.")],
        ]
    )
    monkeypatch.setattr(srv.app.state, "model_factory", lambda _model_id: model, raising=False)
    return TestClient(srv.app)


def test_healthz(client: TestClient) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_chat_streams_sse_events(client: TestClient) -> None:
    r = client.post(
        "/api/chat",
        json={"id": "chat-1", "messages": [{"role": "user", "parts": [{"type": "text", "text": "Mon sinistre ?"}]}]},
    )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache"
    assert r.headers["x-accel-buffering"] == "no"

    events = _events(r.text)
    names = [e[0] for e in events]
    assert names[0] == "start"
    assert events[0][1] == {"messageId": "chat-1"}
    assert "tool-output-available" in names
    assert names[-1] == "finish"
    out = next(p for n, p in events if n == "tool-output-available")
    assert out["toolCallId"] == "c1"
    assert out["output"]["status"] == "paid"


@pytest.mark.parametrize(
    "body",
    [
        {"messages": []},
        {},
        {"messages": [{"role": "robot", "parts": []}]},
    ],
)
def test_chat_rejects_malformed_requests(client: TestClient, body: Dict[str, Any]) -> None:
    assert client.post("/api/chat", json=body).status_code == 422


def test_tools_catalog(client: TestClient) -> None:
    body = client.get("/api/tools").json()
    assert set(body["categories"]) == {"productInfo", "clientServices", "claims", "quotes"}
    by_name = {t["name"]: t for t in body["tools"]}
    assert len(by_name) == 6
    assert by_name["checkClaimCoverage"]["category"] == "claims"
    assert "natureSinistre" in by_name["checkClaimCoverage"]["inputSchema"]["properties"]


def test_suggestions(client: TestClient) -> None:
    assert len(client.get("/api/suggestions").json()["suggestions"]) == 6
    claims = client.get("/api/suggestions", params={"category": "claim"}).json()["suggestions"]
    assert {s["id"] for s in claims} == {"claim-status", "coverage-check"}
    assert len(client.get("/api/suggestions", params={"limit": 2}).json()["suggestions"]) == 2


def test_models(client: TestClient) -> None:
    body = client.get("/api/models").json()
    assert body["default"] == "openai/gpt-oss-120b"
    assert body["webSearch"] == "perplexity/sonar"
    assert {m["value"] for m in body["models"]} >= {"openai/gpt-oss-120b", "google/gemini-2.5-flash"}
