from __future__ import annotations

from fastapi import APIRouter, Depends

from app.agents.registry import AgentRegistry
from app.api.deps import get_gateway, get_registry
from app.llm_client import ModelGateway
from app.models.schemas import AgentInfo, AgentsResponse

router = APIRouter(prefix="/api/agents", tags=["agents"])


@router.get("", response_model=AgentsResponse)
async def list_agents(
    registry: AgentRegistry = Depends(get_registry),
    gateway: ModelGateway = Depends(get_gateway),
):
    """List the configured review agents and their models."""
    return AgentsResponse(
        transport=gateway.mode.value,
        agents=[AgentInfo(**profile.to_dict()) for profile in registry.all()],
    )
