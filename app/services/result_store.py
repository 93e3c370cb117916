"""Per-(project, agent) result persistence.

The orchestrator treats the store as a write-mostly side channel: every write
goes through ``try_persist`` so a storage outage never reaches the review.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Awaitable, Callable, Protocol

from app.models.review import AgentRole, AgentRunRecord, AgentRunStatus, ReviewTemplate
from app.services import logger as log_service


class PersistenceError(Exception):
    """A result store operation failed."""


class ResultStore(Protocol):
    async def upsert(self, project_id: str, role: AgentRole, record: AgentRunRecord) -> None: ...

    async def read_all(self, project_id: str) -> dict[AgentRole, AgentRunRecord]: ...

    async def get_template(self, template_id: str) -> ReviewTemplate | None: ...

    async def touch_project(self, project_id: str) -> None: ...

    async def append_chat(self, project_id: str, role: str, text: str) -> None: ...


async def try_persist(
    write: Callable[[], Awaitable[Any]],
    *,
    operation: str,
    project_id: str,
    role: str | None = None,
    table: str = "review_results",
) -> bool:
    """Run a store write, logging and swallowing any failure."""
    try:
        await write()
    except Exception as e:
        log_service.log_db_operation(
            operation=operation,
            table=table,
            status="failed",
            details=f"project={project_id} role={role}",
            error=str(e) or e.__class__.__name__,
        )
        return False
    return True


def template_from_row(row: dict[str, Any]) -> ReviewTemplate:
    """Map a ``review_templates`` row (focusA/focusB/focusC) onto reviewer roles."""
    columns = {
        AgentRole.REVIEWER_A: ("focusA", "focus_a"),
        AgentRole.REVIEWER_B: ("focusB", "focus_b"),
        AgentRole.REVIEWER_C: ("focusC", "focus_c"),
    }
    overrides: dict[AgentRole, str] = {}
    for role, keys in columns.items():
        for key in keys:
            value = row.get(key)
            if isinstance(value, str) and value.strip():
                overrides[role] = value.strip()
                break
    return ReviewTemplate(
        id=str(row.get("id", "")),
        name=str(row.get("name") or ""),
        focus_overrides=overrides,
    )


class InMemoryResultStore:
    """Process-local store, used when Supabase is not configured and in tests."""

    def __init__(self) -> None:
        self._records: dict[str, dict[AgentRole, AgentRunRecord]] = defaultdict(dict)
        self._templates: dict[str, ReviewTemplate] = {}
        self.writes: list[tuple[str, AgentRole, AgentRunRecord]] = []
        self.chat: dict[str, list[tuple[str, str]]] = defaultdict(list)
        self.touched: list[str] = []

    def add_template(self, template: ReviewTemplate) -> None:
        self._templates[template.id] = template

    async def upsert(self, project_id: str, role: AgentRole, record: AgentRunRecord) -> None:
        stored = AgentRunRecord(status=record.status, content=record.content, error=record.error)
        self._records[project_id][role] = stored
        self.writes.append((project_id, role, stored))

    async def read_all(self, project_id: str) -> dict[AgentRole, AgentRunRecord]:
        return dict(self._records.get(project_id, {}))

    async def get_template(self, template_id: str) -> ReviewTemplate | None:
        return self._templates.get(template_id)

    async def touch_project(self, project_id: str) -> None:
        self.touched.append(project_id)

    async def append_chat(self, project_id: str, role: str, text: str) -> None:
        self.chat[project_id].append((role, text))


class SupabaseResultStore:
    """``review_results`` table keyed uniquely by (project_id, agent_type)."""

    async def upsert(self, project_id: str, role: AgentRole, record: AgentRunRecord) -> None:
        from app.services import supabase as db

        try:
            await db.upsert_review_result(
                project_id,
                role.value,
                record.status.value,
                content=record.content,
                error=record.error,
            )
        except Exception as e:
            raise PersistenceError(f"upsert {role.value} failed: {e}") from e
        log_service.log_db_operation("upsert", "review_results", "success", details=role.value)

    async def read_all(self, project_id: str) -> dict[AgentRole, AgentRunRecord]:
        from app.services import supabase as db

        try:
            rows = await db.get_review_results(project_id)
        except Exception as e:
            raise PersistenceError(f"read review_results failed: {e}") from e

        records: dict[AgentRole, AgentRunRecord] = {}
        for row in rows:
            try:
                role = AgentRole(row.get("agent_type"))
                status = AgentRunStatus(row.get("status") or AgentRunStatus.IDLE)
            except ValueError:
                continue
            records[role] = AgentRunRecord(
                status=status,
                content=row.get("content"),
                error=row.get("error"),
            )
        return records

    async def get_template(self, template_id: str) -> ReviewTemplate | None:
        from app.services import supabase as db

        try:
            row = await db.get_review_template(template_id)
        except Exception as e:
            raise PersistenceError(f"read review_templates failed: {e}") from e
        return template_from_row(row) if row else None

    async def touch_project(self, project_id: str) -> None:
        from app.services import supabase as db

        try:
            await db.touch_project(project_id)
        except Exception as e:
            raise PersistenceError(f"touch project failed: {e}") from e

    async def append_chat(self, project_id: str, role: str, text: str) -> None:
        from app.services import supabase as db

        try:
            await db.create_chat_message(project_id, role, text)
        except Exception as e:
            raise PersistenceError(f"insert chat_history failed: {e}") from e
