from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.agents.expert_agent import ExpertRecommendationAgent
from app.api.deps import get_expert_agent
from app.models.schemas import ExpertInfo, ExpertRequest, ExpertResponse, to_documents
from app.services.expert_parser import parse_expert_tables

router = APIRouter(prefix="/api/expert", tags=["expert"])


@router.post("", response_model=ExpertResponse)
async def recommend_experts(
    request: ExpertRequest,
    agent: ExpertRecommendationAgent = Depends(get_expert_agent),
):
    """Recommend review experts for a project, as markdown tables plus parsed rows."""
    result = await agent.run_for_project(request.project_id, to_documents(request.materials))
    if not result.succeeded:
        body = ExpertResponse(success=False, error=result.error)
        return JSONResponse(status_code=500, content=body.model_dump())

    experts = [ExpertInfo(**expert.to_dict()) for expert in parse_expert_tables(result.content)]
    return ExpertResponse(success=True, content=result.content, experts=experts)
