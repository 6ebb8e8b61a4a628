"""
FastAPI dependencies resolving the per-application services.

Services live on app.state so tests can install fakes; anything missing is
built from settings on first use.
"""

from fastapi import Request

from wrapstudio.core.config import settings
from wrapstudio.core.database import SupabaseStore
from wrapstudio.services.artifact_manager import ArtifactManager
from wrapstudio.services.generation_service import HttpGenerationBackend
from wrapstudio.services.render_orchestrator import RenderOrchestrator
from wrapstudio.services.run_registry import RunRegistry


def get_registry(request: Request) -> RunRegistry:
    state = request.app.state
    if getattr(state, "registry", None) is None:
        state.registry = RunRegistry()
    return state.registry


def get_orchestrator(request: Request) -> RenderOrchestrator:
    state = request.app.state
    if getattr(state, "orchestrator", None) is None:
        state.orchestrator = RenderOrchestrator(
            HttpGenerationBackend(request_timeout=settings.GENERATION_REQUEST_TIMEOUT),
            timeout=settings.RENDER_TIMEOUT_SECONDS,
            max_concurrency=settings.RENDER_MAX_CONCURRENCY,
        )
    return state.orchestrator


def get_artifact_manager(request: Request) -> ArtifactManager:
    state = request.app.state
    if getattr(state, "artifact_manager", None) is None:
        state.artifact_manager = ArtifactManager(SupabaseStore())
    return state.artifact_manager
