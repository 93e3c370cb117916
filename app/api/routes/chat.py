from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.agents.chat_agent import ChatAgent
from app.api.deps import get_chat_agent, get_store
from app.llm_client import UpstreamError
from app.models.schemas import ChatRequest, ChatResponse, to_documents
from app.services.result_store import ResultStore, try_persist

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    agent: ChatAgent = Depends(get_chat_agent),
    store: ResultStore = Depends(get_store),
):
    """Answer a follow-up question about the project and its review."""
    project_id = request.project_id
    await try_persist(
        lambda: store.append_chat(project_id, "user", request.message),
        operation="insert_chat_user",
        project_id=project_id,
        table="chat_history",
    )

    try:
        answer = await agent.reply(
            request.message,
            [turn.to_message() for turn in request.history],
            to_documents(request.materials),
            to_documents(request.guidelines),
            request.final_report,
        )
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))

    await try_persist(
        lambda: store.append_chat(project_id, "model", answer),
        operation="insert_chat_model",
        project_id=project_id,
        table="chat_history",
    )
    return ChatResponse(success=True, response=answer)
