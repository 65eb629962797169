"""Generation API endpoints.

- POST /api/generations - Run a full preview/refine job and return its result
- GET /api/generations/progress - Latest progress snapshot for the UI

The POST call blocks until the job finishes (up to two poll budgets). It
never fails because of the remote pipeline: a DEGRADED result is returned
instead.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from meshforge.api.dependencies import get_orchestrator, get_progress_feed
from meshforge.models.generation import GeneratedResult, ProgressSnapshot
from meshforge.services.generation.orchestrator import JobOrchestrator
from meshforge.services.generation.progress import ProgressFeed
from meshforge.services.generation.prompt_validator import validate_prompt

logger = structlog.get_logger()
router = APIRouter(prefix="/api/generations", tags=["generations"])


class GenerateRequest(BaseModel):
    """Request model for starting a generation job."""

    prompt: str = Field(..., description="Text description of the 3D asset", min_length=1)


@router.post("", response_model=GeneratedResult)
async def create_generation(
    request: GenerateRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> GeneratedResult:
    """Generate a 3D asset for the prompt and record it in history.

    Raises:
        HTTPException: 422 if the prompt is blank or longer than MAX_PROMPT_LENGTH
    """
    try:
        prompt = validate_prompt(request.prompt, orchestrator.client.max_prompt_length)
    except ValueError as e:
        logger.info("api.generation.prompt_rejected", error_message=str(e))
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return await orchestrator.run(prompt)


@router.get("/progress", response_model=ProgressSnapshot)
async def get_progress(feed: ProgressFeed = Depends(get_progress_feed)) -> ProgressSnapshot:
    return feed.latest
