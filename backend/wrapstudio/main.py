"""
backend/wrapstudio/main.py

FastAPI Entrypoint.
Exposes the multi-variant render orchestrator.

Responsibilities:
- Initialize FastAPI app
- Register routers (renders, status, artifacts)
- Setup middleware (CORS, logging)
- Health check endpoints
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wrapstudio.core.config import settings
from wrapstudio.core.logger import setup_logger
from wrapstudio.routes import artifacts, renders, status
from wrapstudio.services.artifact_manager import ArtifactManager
from wrapstudio.services.render_orchestrator import RenderOrchestrator
from wrapstudio.services.run_registry import RunRegistry


def create_app(
    orchestrator: Optional[RenderOrchestrator] = None,
    artifact_manager: Optional[ArtifactManager] = None,
    registry: Optional[RunRegistry] = None,
) -> FastAPI:
    setup_logger(settings.LOG_LEVEL, settings.LOG_FILE)

    app = FastAPI(
        title="WrapStudio Render Orchestrator",
        description="Multi-variant vehicle wrap rendering and artifact versioning",
        version="0.1.0",
    )

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific frontend origin
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Unset services are built from settings on first request
    app.state.orchestrator = orchestrator
    app.state.artifact_manager = artifact_manager
    app.state.registry = registry or RunRegistry()

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"message": "WrapStudio backend is running"}

    app.include_router(renders.router, prefix=settings.API_V1_STR)
    app.include_router(status.router, prefix=settings.API_V1_STR)
    app.include_router(artifacts.router, prefix=settings.API_V1_STR)

    return app


app = create_app()
