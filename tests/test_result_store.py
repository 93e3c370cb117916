from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from app.models.review import AgentRole, AgentRunRecord, AgentRunStatus
from app.services.result_store import (
    PersistenceError,
    SupabaseResultStore,
    template_from_row,
    try_persist,
)


@pytest.mark.asyncio
async def test_try_persist_swallows_and_logs_failures():
    write = AsyncMock(side_effect=PersistenceError("connection refused"))

    with patch("app.services.result_store.log_service") as mock_log:
        ok = await try_persist(write, operation="upsert_thinking", project_id="p1", role="REVIEWER_A")

    assert ok is False
    write.assert_awaited_once()
    kwargs = mock_log.log_db_operation.call_args.kwargs
    assert kwargs["status"] == "failed"
    assert kwargs["error"] == "connection refused"
    assert "REVIEWER_A" in kwargs["details"]


@pytest.mark.asyncio
async def test_try_persist_logs_against_the_callers_table():
    write = AsyncMock(side_effect=PersistenceError("insert chat_history failed"))

    with patch("app.services.result_store.log_service") as mock_log:
        await try_persist(write, operation="insert_chat_user", project_id="p1", table="chat_history")

    assert mock_log.log_db_operation.call_args.kwargs["table"] == "chat_history"


@pytest.mark.asyncio
async def test_try_persist_reports_success():
    assert await try_persist(AsyncMock(), operation="touch_project", project_id="p1") is True


@pytest.mark.asyncio
async def test_in_memory_store_keeps_last_write_per_slot(store):
    await store.upsert("p1", AgentRole.REVIEWER_A, AgentRunRecord(status=AgentRunStatus.THINKING))
    await store.upsert("p1", AgentRole.REVIEWER_A, AgentRunRecord(status=AgentRunStatus.COMPLETED, content="ok"))
    await store.upsert("p2", AgentRole.REVIEWER_A, AgentRunRecord(status=AgentRunStatus.ERROR, error="x"))

    records = await store.read_all("p1")

    assert list(records) == [AgentRole.REVIEWER_A]
    assert records[AgentRole.REVIEWER_A].content == "ok"
    assert len(store.writes) == 3
    assert await store.read_all("missing") == {}


def test_template_from_row_maps_focus_columns():
    template = template_from_row(
        {"id": 7, "name": "Biotech", "focusA": "clinical ethics", "focus_b": "  assay novelty ", "focusC": ""}
    )

    assert template.id == "7"
    assert template.focus_overrides == {
        AgentRole.REVIEWER_A: "clinical ethics",
        AgentRole.REVIEWER_B: "assay novelty",
    }


@pytest.mark.asyncio
async def test_supabase_store_wraps_client_errors():
    with patch(
        "app.services.supabase.upsert_review_result",
        new=AsyncMock(side_effect=RuntimeError("401 Unauthorized")),
    ):
        with pytest.raises(PersistenceError, match="401"):
            await SupabaseResultStore().upsert(
                "p1", AgentRole.SYNTHESIZER, AgentRunRecord(status=AgentRunStatus.THINKING)
            )


@pytest.mark.asyncio
async def test_supabase_store_upsert_passes_row_values():
    upsert = AsyncMock()
    with patch("app.services.supabase.upsert_review_result", new=upsert):
        await SupabaseResultStore().upsert(
            "p1", AgentRole.REVIEWER_C, AgentRunRecord(status=AgentRunStatus.COMPLETED, content="done")
        )

    upsert.assert_awaited_once_with("p1", "REVIEWER_C", "COMPLETED", content="done", error=None)


@pytest.mark.asyncio
async def test_supabase_store_read_all_skips_unknown_rows():
    rows = [
        {"agent_type": "REVIEWER_A", "status": "COMPLETED", "content": "review", "error": None},
        {"agent_type": "LEGACY_AGENT", "status": "COMPLETED", "content": "old"},
        {"agent_type": "SYNTHESIZER", "status": None, "content": None},
    ]
    with patch("app.services.supabase.get_review_results", new=AsyncMock(return_value=rows)):
        records = await SupabaseResultStore().read_all("p1")

    assert set(records) == {AgentRole.REVIEWER_A, AgentRole.SYNTHESIZER}
    assert records[AgentRole.REVIEWER_A].content == "review"
    assert records[AgentRole.SYNTHESIZER].status is AgentRunStatus.IDLE
