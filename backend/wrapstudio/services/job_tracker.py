"""
In-memory job state for a single orchestration run.

A tracker is owned by exactly one run and is never shared, so it holds no
locks. Jobs move pending -> generating -> complete | error and never back.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from wrapstudio.core.errors import InvalidTransitionError


class JobStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)


@dataclass
class RenderJob:
    variant_key: str
    status: JobStatus = JobStatus.PENDING
    fields: Dict[str, Any] = field(default_factory=dict)
    result_url: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant_key": self.variant_key,
            "status": self.status.value,
            "fields": dict(self.fields),
            "result_url": self.result_url,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobTracker:
    """Registry of variant key -> RenderJob for one run."""

    def __init__(self):
        self._jobs: Dict[str, RenderJob] = {}

    def register(self, variant_key: str, fields: Optional[Dict[str, Any]] = None) -> RenderJob:
        if variant_key in self._jobs:
            raise ValueError(f"Variant '{variant_key}' is already registered")
        job = RenderJob(variant_key=variant_key, fields=dict(fields or {}))
        self._jobs[variant_key] = job
        return job

    def mark_generating(self, variant_key: str) -> RenderJob:
        job = self._transition(variant_key, JobStatus.PENDING, JobStatus.GENERATING)
        job.started_at = _now()
        return job

    def mark_complete(self, variant_key: str, result_url: str) -> RenderJob:
        if not result_url:
            raise ValueError("A completed job needs a result URL")
        job = self._transition(variant_key, JobStatus.GENERATING, JobStatus.COMPLETE)
        job.result_url = result_url
        job.finished_at = _now()
        return job

    def mark_error(self, variant_key: str, message: str) -> RenderJob:
        job = self._transition(variant_key, JobStatus.GENERATING, JobStatus.ERROR)
        job.error_message = message or "Unknown error"
        job.finished_at = _now()
        return job

    def _transition(self, variant_key: str, expected: JobStatus, target: JobStatus) -> RenderJob:
        job = self.get(variant_key)
        if job.status is not expected:
            raise InvalidTransitionError(
                f"Cannot move '{variant_key}' from {job.status.value} to {target.value}"
            )
        job.status = target
        return job

    def get(self, variant_key: str) -> RenderJob:
        try:
            return self._jobs[variant_key]
        except KeyError:
            raise KeyError(f"Unknown variant '{variant_key}'") from None

    def snapshot(self) -> List[RenderJob]:
        """Copies of every job in registration order."""
        return [replace(job, fields=dict(job.fields)) for job in self._jobs.values()]

    def results(self) -> Dict[str, str]:
        """variant key -> result URL for completed jobs."""
        return {
            key: job.result_url
            for key, job in self._jobs.items()
            if job.status is JobStatus.COMPLETE
        }

    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in JobStatus}
        for job in self._jobs.values():
            totals[job.status.value] += 1
        return totals

    def is_settled(self) -> bool:
        return all(job.status.is_terminal for job in self._jobs.values())

    def __contains__(self, variant_key: str) -> bool:
        return variant_key in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
