"""
Status endpoint for live run monitoring.

Provides per-variant status for the result galleries to poll while a run
is rendering.
"""

from fastapi import APIRouter, Depends, HTTPException

from wrapstudio.core.dependencies import get_registry
from wrapstudio.models.response_models import JobState, RunStatus
from wrapstudio.services.render_orchestrator import OrchestrationRun
from wrapstudio.services.run_registry import RunRegistry

router = APIRouter(prefix="/status", tags=["Status"])


@router.get("/summary")
async def get_runs_summary(registry: RunRegistry = Depends(get_registry)):
    """
    Summary of the runs this instance knows about.

    Returns:
        total_runs: Number of tracked runs
        by_state: Count of runs per state (rendering, settled, superseded)
        recent_runs: Last 10 runs started
    """
    runs = registry.list_runs()

    state_counts = {}
    for run in runs:
        state = _run_state(run)
        state_counts[state] = state_counts.get(state, 0) + 1

    recent = [
        {
            "run_id": run.run_id,
            "state": _run_state(run),
            "mode": run.params.mode,
            "created_at": run.created_at.isoformat(),
        }
        for run in reversed(runs[-10:])
    ]

    return {
        "total_runs": len(runs),
        "by_state": state_counts,
        "recent_runs": recent,
    }


@router.get("/{run_id}", response_model=RunStatus)
async def get_run_status(run_id: str, registry: RunRegistry = Depends(get_registry)):
    """Current job states, counts and an estimated completion percentage."""
    try:
        run = registry.get(run_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")

    jobs = run.jobs
    return RunStatus(
        run_id=run.run_id,
        strategy=run.strategy.value,
        mode=run.params.mode,
        settled=run.is_settled(),
        finished=run.finished,
        superseded=run.superseded,
        stale_results=run.stale_results,
        counts=run.tracker.counts(),
        progress_percentage=_calculate_progress(run),
        jobs=[JobState(**job.to_dict()) for job in jobs],
        variant_results=run.variant_results,
        blocked_stages=[b.stage for b in run.blocked_stages],
        artifact_id=run.artifact.get("id") if run.artifact else None,
    )


def _run_state(run: OrchestrationRun) -> str:
    if run.superseded:
        return "superseded"
    if run.finished:
        return "settled"
    return "rendering"


def _calculate_progress(run: OrchestrationRun) -> int:
    """
    Share of variants that reached a final state.

    Stages blocked behind a failed predecessor count as done, since they
    will never start. A finished run always reports 100.
    """
    if run.finished:
        return 100

    total = len(run.tracker)
    if total == 0:
        return 0

    blocked = {b.stage for b in run.blocked_stages}
    done = sum(1 for job in run.jobs if job.status.is_terminal or job.variant_key in blocked)
    return int(100 * done / total)
