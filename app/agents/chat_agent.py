from __future__ import annotations

from typing import Sequence

from loguru import logger

from app.agents.orchestrator import build_document_context
from app.config import OrchestratorConfig
from app.llm_client import Message, ModelGateway
from app.models.review import ChatMessage, ReviewDocument
from app.services.prompt_store import prompt_text, render_prompt

HISTORY_WINDOW = 4


def build_chat_messages(
    message: str,
    history: Sequence[ChatMessage],
    materials: Sequence[ReviewDocument],
    guidelines: Sequence[ReviewDocument],
    final_report: str | None,
) -> list[Message]:
    system_prompt = render_prompt(
        "chat.system_prompt",
        final_report=final_report or prompt_text("chat.no_report"),
    )
    messages: list[Message] = [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": render_prompt(
                "chat.documents_intro",
                context=build_document_context(materials, guidelines),
            ),
        },
    ]
    for turn in list(history)[-HISTORY_WINDOW:]:
        messages.append(
            {"role": "user" if turn.role == "user" else "assistant", "content": turn.text}
        )
    messages.append({"role": "user", "content": message})
    return messages


class ChatAgent:
    """Follow-up questions about a reviewed project."""

    def __init__(self, config: OrchestratorConfig, gateway: ModelGateway):
        self.config = config
        self.gateway = gateway

    async def reply(
        self,
        message: str,
        history: Sequence[ChatMessage],
        materials: Sequence[ReviewDocument],
        guidelines: Sequence[ReviewDocument],
        final_report: str | None = None,
    ) -> str:
        messages = build_chat_messages(message, history, materials, guidelines, final_report)
        logger.debug(f"[chat] {len(messages)} messages, {len(history)} history turns supplied")
        return await self.gateway.complete(
            self.config.chat_model,
            messages,
            self.config.chat_temperature,
            caller="chat",
        )
