from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class AgentRole(StrEnum):
    REVIEWER_A = "REVIEWER_A"
    REVIEWER_B = "REVIEWER_B"
    REVIEWER_C = "REVIEWER_C"
    SYNTHESIZER = "SYNTHESIZER"
    EXPERT_HUNTER = "EXPERT_HUNTER"


class AgentRunStatus(StrEnum):
    IDLE = "IDLE"
    THINKING = "THINKING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentRunStatus.COMPLETED, AgentRunStatus.ERROR)


class SourceKind(StrEnum):
    TEXT = "text"
    FILE = "file"


@dataclass(frozen=True, slots=True)
class ReviewDocument:
    """Already-parsed plain text handed over by the ingestion side."""

    id: str
    text_content: str
    display_name: str = ""
    source_kind: SourceKind = SourceKind.TEXT
    mime_type: str | None = None


@dataclass(slots=True)
class AgentRunResult:
    role: AgentRole
    status: AgentRunStatus
    content: str = ""
    error: str | None = None
    name: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is AgentRunStatus.COMPLETED

    @classmethod
    def completed(cls, role: AgentRole, content: str, name: str = "") -> "AgentRunResult":
        return cls(role=role, status=AgentRunStatus.COMPLETED, content=content, name=name)

    @classmethod
    def failed(cls, role: AgentRole, error: str, name: str = "") -> "AgentRunResult":
        return cls(role=role, status=AgentRunStatus.ERROR, content="", error=error, name=name)

    def to_dict(self) -> dict:
        data = {
            "role": self.role.value,
            "name": self.name,
            "content": self.content,
            "success": self.succeeded,
            "status": self.status.value,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class AgentRunRecord:
    """What the result store keeps per (project, role)."""

    status: AgentRunStatus = AgentRunStatus.IDLE
    content: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "content": self.content or "",
            "error": self.error,
        }


@dataclass(slots=True)
class ReviewCycleResult:
    project_id: str
    reviews: list[AgentRunResult] = field(default_factory=list)
    synthesis: AgentRunResult | None = None

    @property
    def success(self) -> bool:
        if self.synthesis is None or not self.synthesis.succeeded:
            return False
        return all(review.succeeded for review in self.reviews)

    def review_for(self, role: AgentRole) -> AgentRunResult | None:
        for review in self.reviews:
            if review.role is role:
                return review
        return None


@dataclass(frozen=True, slots=True)
class ReviewTemplate:
    id: str
    name: str
    focus_overrides: dict[AgentRole, str] = field(default_factory=dict)


class ExpertTier(StrEnum):
    LOCAL = "local"
    REGIONAL = "regional"
    NATIONAL = "national"


@dataclass(slots=True)
class ExpertRecord:
    name: str
    organization: str
    title: str = ""
    research_field: str = ""
    reason: str = ""
    tier: ExpertTier = ExpertTier.LOCAL

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "organization": self.organization,
            "title": self.title,
            "field": self.research_field,
            "reason": self.reason,
            "tier": self.tier.value,
        }


@dataclass(slots=True)
class KeywordAnalysis:
    keywords: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    source: str = "llm"  # llm | fallback


@dataclass(slots=True)
class ProjectMetadata:
    source: str = "Unknown"
    project_name: str = "Unknown"
    organization: str = "Unknown"
    full_name: str = "New Project"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "projectName": self.project_name,
            "organization": self.organization,
            "fullName": self.full_name,
        }


@dataclass(slots=True)
class ChatMessage:
    role: str  # user | model
    text: str
