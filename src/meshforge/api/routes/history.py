"""Generation history API endpoints.

- GET /api/history - List previously generated results, newest first
- GET /api/history/{result_id} - Fetch one result for reuse without re-generation
- DELETE /api/history/{result_id} - Remove one result
- DELETE /api/history - Wipe the whole history
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from meshforge.api.dependencies import get_result_store
from meshforge.models.generation import GeneratedResult
from meshforge.services.history.result_store import ResultStore

logger = structlog.get_logger()
router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=list[GeneratedResult])
async def list_history(results: ResultStore = Depends(get_result_store)) -> list[GeneratedResult]:
    return results.items


@router.get("/{result_id}", response_model=GeneratedResult)
async def get_history_entry(
    result_id: str, results: ResultStore = Depends(get_result_store)
) -> GeneratedResult:
    """Fetch a single history entry.

    Raises:
        HTTPException: 404 if no entry has that id
    """
    result = results.get(result_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Result not found: {result_id}"
        )
    return result


@router.delete("/{result_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_entry(
    result_id: str, results: ResultStore = Depends(get_result_store)
) -> None:
    removed = await results.remove(result_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Result not found: {result_id}"
        )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(results: ResultStore = Depends(get_result_store)) -> None:
    await results.clear()
    logger.info("api.history.cleared")
