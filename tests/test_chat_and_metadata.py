from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from app.agents.chat_agent import ChatAgent, build_chat_messages
from app.agents.metadata_agent import extract_project_metadata, metadata_from_payload
from app.config import OrchestratorConfig, TransportMode
from app.llm_client import ModelGateway, UpstreamError
from app.models.review import ChatMessage, ProjectMetadata
from tests.fakes import FakeGateway


def _history(n: int) -> list[ChatMessage]:
    return [ChatMessage(role="user" if i % 2 == 0 else "model", text=f"turn {i}") for i in range(n)]


# --- Chat ---


def test_chat_keeps_only_last_four_history_turns(materials, guidelines):
    messages = build_chat_messages("What is the budget?", _history(6), materials, guidelines, "Approve.")

    assert messages[0]["role"] == "system"
    assert "Approve." in messages[0]["content"]
    assert messages[1]["role"] == "user"
    assert messages[1]["content"].startswith("These are the project documents:")
    assert "Solid-state battery pilot line" in messages[1]["content"]

    history = messages[2:-1]
    assert [m["content"] for m in history] == ["turn 2", "turn 3", "turn 4", "turn 5"]
    assert [m["role"] for m in history] == ["user", "assistant", "user", "assistant"]
    assert messages[-1] == {"role": "user", "content": "What is the budget?"}


def test_chat_without_report_says_so(materials, guidelines):
    messages = build_chat_messages("Hi", [], materials, guidelines, None)

    assert "No review conclusion yet" in messages[0]["content"]
    assert len(messages) == 3


@pytest.mark.asyncio
async def test_chat_agent_uses_chat_model_and_temperature(config, materials, guidelines):
    gateway = FakeGateway(responses={"chat": "The budget is 3M."})

    answer = await ChatAgent(config, gateway).reply("Budget?", _history(2), materials, guidelines, "")

    assert answer == "The budget is 3M."
    call = gateway.calls[0]
    assert call.model == config.chat_model
    assert call.temperature == 0.5


# --- Metadata ---


@pytest.mark.asyncio
async def test_metadata_from_embedded_json(config):
    gateway = FakeGateway(
        responses={
            "metadata_extraction": 'Result: {"source": "Municipal Science Bureau", '
            '"projectName": "Solid electrolyte scale-up", "organization": "Acme Energy"}'
        }
    )

    metadata = await extract_project_metadata("materials", config=config, gateway=gateway)

    assert metadata.full_name == "Municipal Science Bureau - Solid electrolyte scale-up - Acme Energy"
    assert metadata.to_dict()["projectName"] == "Solid electrolyte scale-up"
    assert gateway.calls[0].model == config.metadata_model


def test_metadata_full_name_skips_unknown_parts():
    metadata = metadata_from_payload({"source": "Unknown", "projectName": "Grid storage", "organization": ""})

    assert metadata.organization == "Unknown"
    assert metadata.full_name == "Grid storage"


def test_metadata_all_unknown_is_new_project():
    assert metadata_from_payload({}).full_name == "New Project"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fake",
    [
        FakeGateway(responses={"metadata_extraction": "I could not find anything."}),
        FakeGateway(responses={"metadata_extraction": "{broken"}),
        FakeGateway(failures={"metadata_extraction": UpstreamError("OpenRouter call failed: 500")}),
        FakeGateway(failures={"metadata_extraction": RuntimeError("decoder exploded")}),
    ],
)
async def test_metadata_failures_return_defaults(config, fake):
    metadata = await extract_project_metadata("materials", config=config, gateway=fake)

    assert metadata == ProjectMetadata()


@pytest.mark.asyncio
async def test_metadata_invalid_live_payload_returns_defaults():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=openai.APIResponseValidationError(response=httpx.Response(200, request=request), body=None)
    )
    config = OrchestratorConfig(transport_mode=TransportMode.LIVE, api_key="sk-test")

    metadata = await extract_project_metadata(
        "Pilot line proposal", config=config, gateway=ModelGateway(config, client=client)
    )

    assert metadata == ProjectMetadata()
