from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from supabase import Client, create_client

from app.config import settings


def get_client() -> Client:
    return create_client(settings.supabase_url, settings.supabase_service_key)


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def _execute(query: Any) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    return await asyncio.to_thread(query.execute)


# --- Review results ---


async def upsert_review_result(
    project_id: str,
    agent_type: str,
    status: str,
    content: str | None = None,
    error: str | None = None,
) -> None:
    row: dict[str, Any] = {
        "project_id": project_id,
        "agent_type": agent_type,
        "status": status,
        "content": content,
        "error": error,
    }
    await _execute(
        client().table("review_results").upsert(row, on_conflict="project_id,agent_type")
    )


async def get_review_results(project_id: str) -> list[dict[str, Any]]:
    result = await _execute(
        client().table("review_results").select("*").eq("project_id", project_id)
    )
    return result.data or []


# --- Projects ---


async def touch_project(project_id: str) -> None:
    await _execute(
        client()
        .table("projects")
        .update({"updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", project_id)
    )


# --- Templates ---


async def get_review_template(template_id: str) -> dict[str, Any] | None:
    result = await _execute(
        client().table("review_templates").select("*").eq("id", template_id)
    )
    return result.data[0] if result.data else None


# --- Chat ---


async def create_chat_message(project_id: str, role: str, text: str) -> dict[str, Any]:
    row = {"project_id": project_id, "role": role, "text": text}
    result = await _execute(client().table("chat_history").insert(row))
    return result.data[0] if result.data else row
