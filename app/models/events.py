from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    START = "start"
    AGENT_START = "agent_start"
    AGENT_COMPLETE = "agent_complete"
    AGENT_ERROR = "agent_error"
    SYNTHESIZER_START = "synthesizer_start"
    SYNTHESIZER_COMPLETE = "synthesizer_complete"
    SYNTHESIZER_ERROR = "synthesizer_error"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.COMPLETE, EventType.ERROR})


@dataclass
class ReviewEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def payload(self) -> dict[str, Any]:
        return {"type": self.event.value, **self.data}

    def to_json(self) -> str:
        return json.dumps(self.payload(), ensure_ascii=False)

    def format(self) -> str:
        return f"data: {self.to_json()}\n\n"
