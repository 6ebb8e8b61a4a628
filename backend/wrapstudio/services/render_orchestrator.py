"""
Orchestrator for multi-variant render runs.

Responsibilities:
- Create a run (its own JobTracker) from an enumerated variant plan
- Drive one generation call per variant, sequentially or in parallel
- Record per-variant failures without aborting sibling variants
- Never start a pipeline stage whose predecessor did not complete
- Discard results that arrive after the run was superseded
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from wrapstudio.core.errors import PipelineStageBlockedError, StaleRunResult, VariantGenerationError
from wrapstudio.core.logger import get_logger
from wrapstudio.models.variants import Strategy, Variant, VariantPlan
from wrapstudio.services.generation_service import GenerationBackend, GenerationRequest
from wrapstudio.services.job_tracker import JobStatus, JobTracker, RenderJob

logger = get_logger(__name__)


@dataclass
class RenderParams:
    """Input bundle shared by every variant of a run."""

    subject_attributes: Dict[str, Any]
    mode: str = "hero"
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OrchestrationRun:
    plan: VariantPlan
    params: RenderParams
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    tracker: JobTracker = field(default_factory=JobTracker)
    superseded: bool = False
    blocked_stages: List[PipelineStageBlockedError] = field(default_factory=list)
    stale_results: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    # Stored artifact row once the run has been persisted
    artifact: Optional[Dict[str, Any]] = None
    # Artifact row written while its version row is still missing
    pending_artifact: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        for variant in self.plan:
            self.tracker.register(variant.key, variant.fields)

    @property
    def strategy(self) -> Strategy:
        return self.plan.strategy

    @property
    def jobs(self) -> List[RenderJob]:
        return self.tracker.snapshot()

    @property
    def variant_results(self) -> Dict[str, str]:
        return self.tracker.results()

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def is_settled(self) -> bool:
        """
        Every job is terminal, or pending only because its stage was blocked.

        A superseded run is settled once execution has returned; its jobs
        left generating were discarded as stale and will not change.
        """
        if self.superseded and self.finished:
            return True
        blocked = {b.stage for b in self.blocked_stages}
        return all(
            job.status.is_terminal or job.variant_key in blocked
            for job in self.tracker.snapshot()
        )

    def supersede(self):
        self.superseded = True


class RenderOrchestrator:
    """
    Drives generation calls for a run and returns the final job states.

    Args:
        backend: generation backend invocation contract
        timeout: per-variant timeout in seconds; a call exceeding it marks
            the job as error
        max_concurrency: cap on simultaneous calls in parallel runs
    """

    def __init__(
        self,
        backend: GenerationBackend,
        timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.backend = backend
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    def create_run(self, plan: VariantPlan, params: RenderParams) -> OrchestrationRun:
        return OrchestrationRun(plan=plan, params=params)

    async def render(self, plan: VariantPlan, params: RenderParams) -> OrchestrationRun:
        """Create a run and drive it to settlement."""
        run = self.create_run(plan, params)
        await self.execute(run)
        return run

    async def execute(self, run: OrchestrationRun) -> List[RenderJob]:
        logger.info(
            f"Run {run.run_id}: rendering {len(run.plan)} variant(s) "
            f"({run.strategy.value}, mode={run.params.mode})"
        )
        try:
            if run.strategy is Strategy.SEQUENTIAL:
                await self._run_sequential(run)
            else:
                await self._run_parallel(run)
        finally:
            run.finished_at = datetime.now(timezone.utc)

        counts = run.tracker.counts()
        logger.info(
            f"Run {run.run_id} finished: {counts['complete']} complete, "
            f"{counts['error']} error, {counts['pending']} pending"
        )
        return run.jobs

    async def _run_sequential(self, run: OrchestrationRun):
        for variant in run.plan:
            if run.superseded:
                logger.info(f"Run {run.run_id} superseded; not starting '{variant.key}'")
                break

            extra = {}
            if variant.depends_on is not None:
                predecessor = run.tracker.get(variant.depends_on)
                if predecessor.status is not JobStatus.COMPLETE:
                    blocked = PipelineStageBlockedError(variant.key, variant.depends_on)
                    run.blocked_stages.append(blocked)
                    logger.warning(f"Run {run.run_id}: {blocked}")
                    continue
                extra["source_image_url"] = predecessor.result_url

            await self._render_variant(run, variant, extra)

    async def _run_parallel(self, run: OrchestrationRun):
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def guarded(variant: Variant) -> bool:
            if semaphore is None:
                return await self._render_variant(run, variant)
            async with semaphore:
                if run.superseded:
                    return False
                return await self._render_variant(run, variant)

        variants = list(run.plan)
        outcomes = await asyncio.gather(*(guarded(v) for v in variants), return_exceptions=True)

        for variant, outcome in zip(variants, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Run {run.run_id}: variant '{variant.key}' raised outside job handling",
                    exc_info=outcome,
                )

    async def _render_variant(
        self, run: OrchestrationRun, variant: Variant, extra: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Returns True when the variant completed."""
        tracker = run.tracker
        tracker.mark_generating(variant.key)

        request = GenerationRequest(
            subject_attributes=dict(run.params.subject_attributes),
            variant_fields={**variant.fields, **(extra or {})},
            mode=run.params.mode,
            params=dict(run.params.options),
        )

        try:
            call = self.backend.generate(request)
            if self.timeout is not None:
                url = await asyncio.wait_for(call, self.timeout)
            else:
                url = await call
        except asyncio.TimeoutError:
            message = f"Timed out after {self.timeout}s"
        except VariantGenerationError as e:
            message = e.message
        except Exception as e:
            message = str(e) or e.__class__.__name__
        else:
            message = None

        if run.superseded:
            run.stale_results += 1
            logger.info(str(StaleRunResult(run.run_id, variant.key)))
            return False

        if message is not None:
            tracker.mark_error(variant.key, message)
            logger.warning(f"Run {run.run_id}: variant '{variant.key}' failed: {message}")
            return False

        if not url:
            tracker.mark_error(variant.key, "Generation backend returned no image URL")
            logger.warning(f"Run {run.run_id}: variant '{variant.key}' returned no image URL")
            return False

        tracker.mark_complete(variant.key, url)
        logger.info(f"Run {run.run_id}: variant '{variant.key}' complete")
        return True
