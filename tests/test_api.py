"""Tests for API routes."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.agents.chat_agent import ChatAgent
from app.agents.expert_agent import ExpertRecommendationAgent
from app.agents.orchestrator import CycleInProgressError, ReviewOrchestrator
from app.agents.registry import AgentRegistry
from app.api import deps
from app.config import OrchestratorConfig, TransportMode
from app.llm_client import MOCK_EXPERT_TABLES, UpstreamError
from app.main import app
from app.models.review import AgentRole
from app.services.result_store import InMemoryResultStore
from tests.fakes import FakeGateway

MATERIALS = [
    {
        "id": "m1",
        "fileName": "plan.txt",
        "content": "Solid-state battery pilot line.",
        "type": "file",
        "mimeType": "text/plain",
    }
]
GUIDELINES = [{"id": "g1", "displayName": "call.txt", "content": "Two patents required."}]


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    # sse-starlette keeps a module-level exit event bound to the first event loop
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway(
        responses={
            "keyword_extraction": '{"keywords": ["solid-state battery"], "domains": ["materials"]}',
            AgentRole.EXPERT_HUNTER: MOCK_EXPERT_TABLES,
            "metadata_extraction": '{"source": "Science Bureau", "projectName": "Pilot line", "organization": "Unknown"}',
            "chat": "The pilot line targets 2027.",
        }
    )


@pytest.fixture
def client(fake_gateway):
    config = OrchestratorConfig(transport_mode=TransportMode.MOCK)
    store = InMemoryResultStore()
    registry = AgentRegistry.from_config(config)
    orchestrator = ReviewOrchestrator(config, fake_gateway, store=store, registry=registry)
    expert_agent = ExpertRecommendationAgent(
        config, fake_gateway, search=AsyncMock(return_value=[]), store=store
    )

    app.dependency_overrides.update(
        {
            deps.get_config: lambda: config,
            deps.get_gateway: lambda: fake_gateway,
            deps.get_store: lambda: store,
            deps.get_registry: lambda: registry,
            deps.get_orchestrator: lambda: orchestrator,
            deps.get_expert_agent: lambda: expert_agent,
            deps.get_chat_agent: lambda: ChatAgent(config, fake_gateway),
        }
    )
    test_client = TestClient(app)
    test_client.store = store
    yield test_client
    app.dependency_overrides.clear()


def _sse_payloads(body: str) -> list[dict]:
    return [
        json.loads(line[len("data:"):].strip())
        for line in body.splitlines()
        if line.startswith("data:")
    ]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "reviewpanel"}


def test_list_agents(client):
    response = client.get("/api/agents")
    assert response.status_code == 200
    data = response.json()
    assert data["transport"] == "mock"
    assert [a["role"] for a in data["agents"]] == [
        "REVIEWER_A",
        "REVIEWER_B",
        "REVIEWER_C",
        "SYNTHESIZER",
        "EXPERT_HUNTER",
    ]


def test_review_returns_every_result(client):
    response = client.post(
        "/api/review",
        json={"projectId": "p1", "materials": MATERIALS, "guidelines": GUIDELINES},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [r["role"] for r in data["reviews"]] == ["REVIEWER_A", "REVIEWER_B", "REVIEWER_C"]
    assert all(r["success"] and r["status"] == "COMPLETED" for r in data["reviews"])
    assert data["finalReport"] == {"content": "SYNTHESIZER output", "status": "COMPLETED"}


def test_review_partial_failure_is_still_200(client, fake_gateway):
    fake_gateway.failures[AgentRole.REVIEWER_B] = UpstreamError("OpenRouter call failed: 503")

    response = client.post("/api/review", json={"projectId": "p1", "materials": MATERIALS})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    review_b = data["reviews"][1]
    assert review_b["success"] is False
    assert review_b["status"] == "ERROR"
    assert "503" in review_b["error"]
    assert data["finalReport"]["status"] == "COMPLETED"


def test_review_synthesis_failure_has_no_final_report(client, fake_gateway):
    fake_gateway.failures[AgentRole.SYNTHESIZER] = UpstreamError("OpenRouter call failed: 500")

    data = client.post("/api/review", json={"projectId": "p1"}).json()

    assert data["success"] is False
    assert data["finalReport"] is None
    assert "500" in data["error"]


def test_review_conflict_when_cycle_running(client):
    busy = MagicMock()
    busy.run_review_cycle = AsyncMock(side_effect=CycleInProgressError("p1"))
    app.dependency_overrides[deps.get_orchestrator] = lambda: busy

    response = client.post("/api/review", json={"projectId": "p1"})

    assert response.status_code == 409
    assert "already running" in response.json()["detail"]


def test_review_requires_project_id(client):
    response = client.post("/api/review", json={"materials": MATERIALS})
    assert response.status_code == 422


def test_review_stream_event_sequence(client):
    response = client.post(
        "/api/review/stream",
        json={"projectId": "p1", "materials": MATERIALS, "guidelines": GUIDELINES},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    types = [p["type"] for p in _sse_payloads(response.text)]
    assert types == [
        "start",
        "agent_start",
        "agent_complete",
        "agent_start",
        "agent_complete",
        "agent_start",
        "agent_complete",
        "synthesizer_start",
        "synthesizer_complete",
        "complete",
    ]


def test_project_results_default_to_idle(client):
    data = client.get("/api/projects/unknown/results").json()

    assert data["projectId"] == "unknown"
    assert set(data["results"]) == {role.value for role in AgentRole}
    assert all(r["status"] == "IDLE" and r["content"] == "" for r in data["results"].values())


def test_project_results_after_review(client):
    client.post("/api/review", json={"projectId": "p1", "materials": MATERIALS})

    results = client.get("/api/projects/p1/results").json()["results"]

    assert results["SYNTHESIZER"] == {"status": "COMPLETED", "content": "SYNTHESIZER output", "error": None}
    assert results["EXPERT_HUNTER"]["status"] == "IDLE"


def test_expert_returns_tables_and_parsed_experts(client):
    response = client.post("/api/expert", json={"projectId": "p1", "materials": MATERIALS})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["content"] == MOCK_EXPERT_TABLES
    assert len(data["experts"]) == 5
    assert data["experts"][0]["name"] == "Wang Minghua"
    assert data["experts"][-1]["tier"] == "national"


def test_expert_failure_is_500(client, fake_gateway):
    fake_gateway.failures[AgentRole.EXPERT_HUNTER] = UpstreamError("OpenRouter call failed: 502")

    response = client.post("/api/expert", json={"projectId": "p1", "materials": MATERIALS})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert "502" in data["error"]
    assert client.store._records["p1"][AgentRole.EXPERT_HUNTER].status.value == "ERROR"


def test_chat_persists_both_turns(client):
    response = client.post(
        "/api/chat",
        json={
            "projectId": "p1",
            "message": "When does the pilot line start?",
            "history": [{"role": "user", "text": "Hi"}, {"role": "model", "text": "Hello"}],
            "materials": MATERIALS,
            "finalReport": "Recommend support.",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": "The pilot line targets 2027."}
    assert client.store.chat["p1"] == [
        ("user", "When does the pilot line start?"),
        ("model", "The pilot line targets 2027."),
    ]


def test_chat_upstream_failure_is_502(client, fake_gateway):
    fake_gateway.failures["chat"] = UpstreamError("OpenRouter call failed: 503")

    response = client.post("/api/chat", json={"projectId": "p1", "message": "Hello?"})

    assert response.status_code == 502
    assert client.store.chat["p1"] == [("user", "Hello?")]


def test_extract_metadata(client):
    response = client.post("/api/extract-metadata", json={"content": "Pilot line proposal"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "source": "Science Bureau",
        "projectName": "Pilot line",
        "organization": "Unknown",
        "fullName": "Science Bureau - Pilot line",
    }


def test_chat_persistence_failure_is_logged_against_chat_history(client):
    client.store.append_chat = AsyncMock(side_effect=RuntimeError("chat_history unavailable"))

    with patch("app.services.result_store.log_service") as mock_log:
        response = client.post("/api/chat", json={"projectId": "p1", "message": "Hello?"})

    assert response.status_code == 200
    tables = [c.kwargs["table"] for c in mock_log.log_db_operation.call_args_list]
    assert tables == ["chat_history", "chat_history"]
