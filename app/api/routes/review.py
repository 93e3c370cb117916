from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from app.agents.orchestrator import CycleInProgressError, ReviewOrchestrator
from app.api.deps import get_orchestrator
from app.models.schemas import AgentReview, FinalReport, ReviewRequest, ReviewResponse, to_documents
from app.services import logger as log_service
from app.services import streaming

router = APIRouter(prefix="/api/review", tags=["review"])


@router.post("", response_model=ReviewResponse)
async def run_review(
    request: ReviewRequest,
    orchestrator: ReviewOrchestrator = Depends(get_orchestrator),
):
    """Run all reviewers concurrently, then the synthesizer, and return every result."""
    try:
        result = await orchestrator.run_review_cycle(
            request.project_id,
            to_documents(request.materials),
            to_documents(request.guidelines),
            template_id=request.template_id,
        )
    except CycleInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        log_service.log_event(
            event_type="review_error",
            message="Review cycle failed before dispatch",
            error=str(e),
            project_id=request.project_id,
        )
        raise HTTPException(status_code=500, detail=str(e) or "Review failed")

    synthesis = result.synthesis
    final_report = None
    error = None
    if synthesis is not None and synthesis.succeeded:
        final_report = FinalReport(content=synthesis.content, status=synthesis.status.value)
    elif synthesis is not None:
        error = synthesis.error

    return ReviewResponse(
        success=result.success,
        reviews=[AgentReview(**review.to_dict()) for review in result.reviews],
        finalReport=final_report,
        error=error,
    )


@router.post("/stream")
async def stream_review(
    request: ReviewRequest,
    orchestrator: ReviewOrchestrator = Depends(get_orchestrator),
):
    """SSE endpoint: reviewers run one after another, every transition is an event."""

    async def event_generator():
        try:
            async for event in orchestrator.stream_review_cycle(
                request.project_id,
                to_documents(request.materials),
                to_documents(request.guidelines),
                template_id=request.template_id,
            ):
                yield {"event": event.event.value, "data": event.to_json()}
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in review stream",
                error=str(e),
                project_id=request.project_id,
            )
            error_event = streaming.error("Review stream failed unexpectedly.")
            yield {"event": error_event.event.value, "data": error_event.to_json()}

    return EventSourceResponse(event_generator())
