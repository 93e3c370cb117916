from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.agents.metadata_agent import extract_project_metadata
from app.agents.registry import AgentRegistry
from app.api.deps import get_config, get_gateway, get_registry, get_store
from app.config import OrchestratorConfig
from app.llm_client import ModelGateway
from app.models.review import AgentRunRecord
from app.models.schemas import AgentResultOut, MetadataRequest, MetadataResponse, ProjectResultsResponse
from app.services.result_store import PersistenceError, ResultStore

router = APIRouter(prefix="/api", tags=["projects"])


@router.get("/projects/{project_id}/results", response_model=ProjectResultsResponse)
async def get_project_results(
    project_id: str,
    store: ResultStore = Depends(get_store),
    registry: AgentRegistry = Depends(get_registry),
):
    """Current status and content of every agent slot; roles never run are IDLE."""
    try:
        records = await store.read_all(project_id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    results = {
        profile.role.value: AgentResultOut(**records.get(profile.role, AgentRunRecord()).to_dict())
        for profile in registry.all()
    }
    return ProjectResultsResponse(projectId=project_id, results=results)


@router.post("/extract-metadata", response_model=MetadataResponse)
async def extract_metadata(
    request: MetadataRequest,
    config: OrchestratorConfig = Depends(get_config),
    gateway: ModelGateway = Depends(get_gateway),
):
    """Funding body, project name and organisation from the project materials."""
    metadata = await extract_project_metadata(request.content, config=config, gateway=gateway)
    return MetadataResponse(success=True, **metadata.to_dict())
