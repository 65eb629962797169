"""FastAPI dependencies resolving the long-lived services kept on app.state.

The lifespan handler in meshforge.app builds one ResultStore, one
HistoryCollections and one JobOrchestrator per process; routes reach them
through these functions so tests can swap them on app.state.
"""

from fastapi import Request

from meshforge.services.generation.orchestrator import JobOrchestrator
from meshforge.services.generation.progress import ProgressFeed
from meshforge.services.history.collections import HistoryCollections
from meshforge.services.history.result_store import ResultStore


def get_result_store(request: Request) -> ResultStore:
    """Get the history ResultStore from app state.

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(results: ResultStore = Depends(get_result_store)):
        ...     return results.items
    """
    return request.app.state.result_store


def get_collections(request: Request) -> HistoryCollections:
    return request.app.state.collections


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


def get_progress_feed(request: Request) -> ProgressFeed:
    return request.app.state.orchestrator.feed
