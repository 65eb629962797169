"""Saved history collection API endpoints.

- GET /api/collections - List saved collections, newest first
- POST /api/collections - Save the current history under a name
- POST /api/collections/{collection_id}/load - Replace the history with a collection
- DELETE /api/collections/{collection_id} - Delete a collection
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from meshforge.api.dependencies import get_collections
from meshforge.models.collection import HistoryCollection
from meshforge.models.generation import GeneratedResult
from meshforge.services.history.collections import HistoryCollections

router = APIRouter(prefix="/api/collections", tags=["collections"])


class CreateCollectionRequest(BaseModel):
    """Request model for saving the current history."""

    name: str = Field(
        ..., description="Display name of the collection", min_length=1, max_length=200
    )


@router.get("", response_model=list[HistoryCollection])
async def list_collections(
    collections: HistoryCollections = Depends(get_collections),
) -> list[HistoryCollection]:
    return await collections.list_all()


@router.post("", response_model=HistoryCollection, status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: CreateCollectionRequest,
    collections: HistoryCollections = Depends(get_collections),
) -> HistoryCollection:
    """Save the current history as a named collection.

    Raises:
        HTTPException: 400 if the name is blank or the history is empty
    """
    try:
        return await collections.create(request.name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{collection_id}/load", response_model=list[GeneratedResult])
async def load_collection(
    collection_id: str,
    collections: HistoryCollections = Depends(get_collections),
) -> list[GeneratedResult]:
    results = await collections.load(collection_id)
    if results is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Collection not found: {collection_id}",
        )
    return results


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: str,
    collections: HistoryCollections = Depends(get_collections),
) -> None:
    if not await collections.delete(collection_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Collection not found: {collection_id}",
        )
