from __future__ import annotations

import json
import re

from loguru import logger

from app.config import OrchestratorConfig
from app.llm_client import ModelGateway
from app.models.review import ProjectMetadata
from app.services.prompt_store import render_prompt

UNKNOWN = "Unknown"
NEW_PROJECT = "New Project"
METADATA_CONTEXT_CHARS = 3000

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def metadata_from_payload(payload: dict) -> ProjectMetadata:
    source = str(payload.get("source") or UNKNOWN).strip() or UNKNOWN
    project_name = str(payload.get("projectName") or payload.get("project_name") or UNKNOWN).strip() or UNKNOWN
    organization = str(payload.get("organization") or UNKNOWN).strip() or UNKNOWN

    parts = [p for p in (source, project_name, organization) if p != UNKNOWN]
    return ProjectMetadata(
        source=source,
        project_name=project_name,
        organization=organization,
        full_name=" - ".join(parts) if parts else NEW_PROJECT,
    )


async def extract_project_metadata(
    content: str,
    *,
    config: OrchestratorConfig,
    gateway: ModelGateway,
) -> ProjectMetadata:
    """Funding body, project name and organisation; all-unknown on any failure."""
    prompt = render_prompt("metadata.prompt", content=content[:METADATA_CONTEXT_CHARS])
    try:
        reply = await gateway.complete(
            config.metadata_model,
            [{"role": "user", "content": prompt}],
            0.1,
            caller="metadata_extraction",
            max_tokens=500,
        )
        match = _JSON_OBJECT_RE.search(reply)
        if not match:
            raise ValueError("no JSON object in metadata reply")
        payload = json.loads(match.group(0))
        if not isinstance(payload, dict):
            raise ValueError("metadata JSON is not an object")
    except Exception as e:
        logger.warning(f"[metadata] extraction failed, using defaults: {e}")
        return ProjectMetadata()

    metadata = metadata_from_payload(payload)
    logger.info(f"[metadata] extracted: {metadata.full_name}")
    return metadata
