from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from app.config import TransportMode
from app.models.review import AgentRole


@dataclass
class GatewayCall:
    model: str
    messages: list[dict[str, str]]
    temperature: float
    role: AgentRole | None
    caller: str | None
    started_at: float
    finished_at: float | None = None


@dataclass
class FakeGateway:
    """Scriptable stand-in for ModelGateway.

    Responses, failures and delays are keyed by caller name first, then role.
    """

    responses: dict[Any, str] = field(default_factory=dict)
    failures: dict[Any, Exception] = field(default_factory=dict)
    delays: dict[Any, float] = field(default_factory=dict)
    on_call: Callable[[AgentRole | None], Awaitable[None]] | None = None
    calls: list[GatewayCall] = field(default_factory=list)
    mode: TransportMode = TransportMode.MOCK

    def _lookup(self, table: dict[Any, Any], role: AgentRole | None, caller: str | None) -> Any:
        if caller is not None and caller in table:
            return table[caller]
        return table.get(role)

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float = 0.4,
        *,
        role: AgentRole | None = None,
        caller: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        call = GatewayCall(model, messages, temperature, role, caller, time.monotonic())
        self.calls.append(call)
        if self.on_call is not None:
            await self.on_call(role)

        delay = self._lookup(self.delays, role, caller) or 0
        if delay:
            await asyncio.sleep(delay)
        call.finished_at = time.monotonic()

        failure = self._lookup(self.failures, role, caller)
        if failure is not None:
            raise failure
        response = self._lookup(self.responses, role, caller)
        if response is not None:
            return response
        return f"{role.value} output" if role else "reply"

    def calls_for(self, role: AgentRole) -> list[GatewayCall]:
        return [c for c in self.calls if c.role is role]
