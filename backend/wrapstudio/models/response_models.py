"""
Pydantic models for API response schemas.

Responsibilities:
- Define standard response structures
- Ensure consistent API output
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class RenderStarted(BaseModel):
    run_id: str
    status: str
    variants: List[str]
    superseded_run_id: Optional[str] = None


class JobState(BaseModel):
    variant_key: str
    status: str
    fields: Dict[str, Any] = {}
    result_url: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class RunStatus(BaseModel):
    run_id: str
    strategy: str
    mode: str
    settled: bool
    finished: bool
    superseded: bool
    stale_results: int = 0
    counts: Dict[str, int]
    progress_percentage: int
    jobs: List[JobState]
    variant_results: Dict[str, str]
    blocked_stages: List[str] = []
    artifact_id: Optional[str] = None


class ArtifactList(BaseModel):
    total: int
    artifacts: List[Dict[str, Any]]


class VersionHistory(BaseModel):
    artifact_id: str
    total_versions: int
    versions: List[Dict[str, Any]]
