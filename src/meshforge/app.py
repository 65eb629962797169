"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from meshforge.api.routes import collections, generations, history
from meshforge.core.config import Settings, configure_logging
from meshforge.services.generation.orchestrator import JobOrchestrator
from meshforge.services.history.collections import HistoryCollections
from meshforge.services.history.kv_store import kv_store_from_settings
from meshforge.services.history.result_store import ResultStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup tasks:
    - Configure logging
    - Build the key-value backend (PostgreSQL when DATABASE_URL is set)
    - Load the persisted history and wire up the orchestrator
    """
    settings = Settings()  # type: ignore[call-arg]

    configure_logging(settings)

    store, session_factory = await kv_store_from_settings(settings)

    results = ResultStore(store, limit=settings.history_limit)
    loaded = await results.load_all()

    # Store in app.state for access in routes
    app.state.session_factory = session_factory
    app.state.result_store = results
    app.state.collections = HistoryCollections(
        store, results, limit=settings.collections_limit
    )
    app.state.orchestrator = JobOrchestrator.from_settings(settings, results)

    logger.info(
        "application.startup",
        generation_api_url=settings.generation_api_url,
        history_entries=len(loaded),
        persistent=session_factory is not None,
    )

    yield

    logger.info("application.shutdown")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="MeshForge API",
        description="Text-to-3D generation jobs with a persistent result history",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generations.router)
    app.include_router(history.router)
    app.include_router(collections.router)

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with store connectivity test.

        Returns:
            200: {"status": "healthy", "store": ...} if the store is reachable
            503: {"status": "unhealthy", "error": {...}} if the database query fails
        """
        session_factory = getattr(app.state, "session_factory", None)
        if session_factory is None:
            return {"status": "healthy", "store": "memory"}

        try:
            async with session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy", "store": "postgres"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    settings = Settings()  # type: ignore[call-arg]
    uvicorn.run("meshforge.app:app", host=settings.host, port=settings.port)
