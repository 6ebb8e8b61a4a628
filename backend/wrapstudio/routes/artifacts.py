"""
Artifact search and version history.

Provides functionality to:
- Search stored artifacts by vehicle, color category or free text
- List an artifact's versions, newest first
- Record a revised set of renders as a new version
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from wrapstudio.core.dependencies import get_artifact_manager
from wrapstudio.core.errors import ArtifactNotFoundError, PersistenceError, StoreError
from wrapstudio.core.logger import logger
from wrapstudio.models.request_models import VersionRequest
from wrapstudio.models.response_models import ArtifactList, VersionHistory
from wrapstudio.services.artifact_manager import ArtifactManager

router = APIRouter(prefix="/artifacts", tags=["Artifacts"])


@router.get("/", response_model=ArtifactList)
async def search_artifacts(
    make: Optional[str] = None,
    model: Optional[str] = None,
    year: Optional[str] = None,
    category: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 50,
    manager: ArtifactManager = Depends(get_artifact_manager),
):
    """
    Search artifacts.

    Args:
        make, model, year: vehicle filters
        category: derived color category (black, white, gray, red, ...)
        q: free text matched against tags
        limit: Maximum number of artifacts to return (default: 50)
    """
    try:
        artifacts = await manager.find_artifacts(
            make=make, model=model, year=year, category=category, text=q, limit=limit
        )
    except StoreError as e:
        logger.error(f"Artifact search failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return ArtifactList(total=len(artifacts), artifacts=artifacts)


@router.get("/{artifact_id}")
async def get_artifact(artifact_id: str, manager: ArtifactManager = Depends(get_artifact_manager)):
    try:
        artifact = await manager.get_artifact(artifact_id)
    except StoreError as e:
        logger.error(f"Failed to load artifact {artifact_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    if artifact is None:
        raise HTTPException(status_code=404, detail=f"Artifact {artifact_id} not found")
    return artifact


@router.get("/{artifact_id}/versions", response_model=VersionHistory)
async def get_artifact_versions(artifact_id: str, manager: ArtifactManager = Depends(get_artifact_manager)):
    """All versions of an artifact, newest first."""
    try:
        versions = await manager.get_version_history(artifact_id)
    except StoreError as e:
        logger.error(f"Failed to get versions for artifact {artifact_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    if not versions:
        raise HTTPException(status_code=404, detail=f"No versions found for artifact {artifact_id}")

    return VersionHistory(artifact_id=artifact_id, total_versions=len(versions), versions=versions)


@router.post("/{artifact_id}/versions", status_code=201)
async def create_artifact_version(
    artifact_id: str,
    body: VersionRequest,
    manager: ArtifactManager = Depends(get_artifact_manager),
):
    """Record a revised set of renders as the artifact's next version."""
    if not body.variant_results:
        raise HTTPException(status_code=422, detail="variant_results must not be empty")

    try:
        return await manager.create_version(artifact_id, body.variant_results, body.change_description)
    except ArtifactNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Failed to version artifact {artifact_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
