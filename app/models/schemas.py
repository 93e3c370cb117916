from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.review import ChatMessage, ReviewDocument, SourceKind


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Requests ---


class DocumentIn(CamelModel):
    id: str = ""
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices("displayName", "display_name", "fileName", "file_name", "name"),
    )
    content: str = Field(default="", validation_alias=AliasChoices("content", "textContent", "text_content"))
    type: SourceKind = SourceKind.TEXT
    mime_type: str | None = None

    def to_document(self) -> ReviewDocument:
        return ReviewDocument(
            id=self.id,
            text_content=self.content,
            display_name=self.display_name,
            source_kind=self.type,
            mime_type=self.mime_type,
        )


def to_documents(items: list[DocumentIn]) -> list[ReviewDocument]:
    return [item.to_document() for item in items]


class ReviewRequest(CamelModel):
    project_id: str = Field(min_length=1)
    materials: list[DocumentIn] = Field(default_factory=list)
    guidelines: list[DocumentIn] = Field(default_factory=list)
    template_id: str | None = None


class ExpertRequest(CamelModel):
    project_id: str = Field(min_length=1)
    materials: list[DocumentIn]


class ChatTurn(CamelModel):
    role: Literal["user", "model"]
    text: str

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, text=self.text)


class ChatRequest(CamelModel):
    project_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)
    materials: list[DocumentIn] = Field(default_factory=list)
    guidelines: list[DocumentIn] = Field(default_factory=list)
    final_report: str | None = None


class MetadataRequest(BaseModel):
    content: str = Field(min_length=1)


# --- Responses ---


class AgentReview(BaseModel):
    role: str
    name: str
    content: str
    success: bool
    status: str
    error: str | None = None


class FinalReport(BaseModel):
    content: str
    status: str


class ReviewResponse(BaseModel):
    success: bool
    reviews: list[AgentReview]
    finalReport: FinalReport | None = None
    error: str | None = None


class ExpertInfo(BaseModel):
    name: str
    organization: str
    title: str
    field: str
    reason: str
    tier: str


class ExpertResponse(BaseModel):
    success: bool
    content: str = ""
    experts: list[ExpertInfo] = Field(default_factory=list)
    error: str | None = None


class ChatResponse(BaseModel):
    success: bool
    response: str


class MetadataResponse(BaseModel):
    success: bool
    source: str
    projectName: str
    organization: str
    fullName: str


class AgentResultOut(BaseModel):
    status: str
    content: str
    error: str | None = None


class ProjectResultsResponse(BaseModel):
    projectId: str
    results: dict[str, AgentResultOut]


class AgentInfo(BaseModel):
    role: str
    name: str
    description: str
    model: str
    focus: str


class AgentsResponse(BaseModel):
    transport: str
    agents: list[AgentInfo]
