from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

from app.models.events import EventType, ReviewEvent
from app.models.review import AgentRole


def cycle_started(project_id: str, template: str | None = None) -> ReviewEvent:
    data: dict[str, Any] = {"projectId": project_id, "message": "Review cycle started"}
    if template:
        data["template"] = template
    return ReviewEvent(event=EventType.START, data=data)


def agent_started(role: AgentRole, name: str) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.AGENT_START,
        data={"role": role.value, "name": name, "message": f"{name} started reviewing"},
    )


def agent_completed(role: AgentRole, name: str, content: str) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.AGENT_COMPLETE,
        data={
            "role": role.value,
            "name": name,
            "content": content,
            "message": f"{name} finished reviewing",
        },
    )


def agent_failed(role: AgentRole, name: str, error: str) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.AGENT_ERROR,
        data={
            "role": role.value,
            "name": name,
            "error": error,
            "message": f"{name} failed: {error}",
        },
    )


def synthesizer_started() -> ReviewEvent:
    return ReviewEvent(
        event=EventType.SYNTHESIZER_START,
        data={"message": "Chief Review Officer is consolidating the reviews"},
    )


def synthesizer_completed(content: str) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.SYNTHESIZER_COMPLETE,
        data={"content": content, "message": "Consensus report generated"},
    )


def synthesizer_failed(error: str) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.SYNTHESIZER_ERROR,
        data={"error": error, "message": f"Consensus report failed: {error}"},
    )


def cycle_completed(success: bool) -> ReviewEvent:
    return ReviewEvent(
        event=EventType.COMPLETE,
        data={"success": success, "message": "Review cycle finished"},
    )


def error(message: str) -> ReviewEvent:
    return ReviewEvent(event=EventType.ERROR, data={"error": message, "message": message})


_CLOSED = object()


class EventChannel:
    """Single-producer event queue that is closed exactly once.

    The consumer iterates until the close marker arrives.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: ReviewEvent) -> None:
        if self._closed:
            raise RuntimeError("Event channel already closed")
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ReviewEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
