"""
Exception types shared across the render orchestration layer.

Job-level failures (VariantGenerationError, PipelineStageBlockedError) are
recorded on the job and never abort a run. Store and persistence failures
propagate to the caller.
"""

from typing import Optional


class WrapStudioError(Exception):
    """Base class for all orchestrator errors."""


class VariantGenerationError(WrapStudioError):
    """One variant's backend call failed."""

    def __init__(self, message: str, variant_key: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.variant_key = variant_key
        self.status_code = status_code


class PipelineStageBlockedError(WrapStudioError):
    """A pipeline stage was skipped because its predecessor did not complete."""

    def __init__(self, stage: str, predecessor: str):
        super().__init__(f"Stage '{stage}' blocked: predecessor '{predecessor}' did not complete")
        self.stage = stage
        self.predecessor = predecessor


class InvalidTransitionError(WrapStudioError):
    """A job was moved against the pending -> generating -> terminal order."""


class StoreError(WrapStudioError):
    """The persistence store rejected an operation."""


class PersistenceError(WrapStudioError):
    """Writing an artifact failed after generation finished."""


class ArtifactNotFoundError(PersistenceError):
    """A version was requested for an artifact that does not exist."""


class StaleRunResult(WrapStudioError):
    """A result or write targeted a run that has been superseded."""

    def __init__(self, run_id: str, variant_key: Optional[str] = None):
        target = f"variant '{variant_key}' of run {run_id}" if variant_key else f"run {run_id}"
        super().__init__(f"Discarding result for superseded {target}")
        self.run_id = run_id
        self.variant_key = variant_key
