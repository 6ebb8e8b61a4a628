"""
Starts render runs and persists their results.

Responsibilities:
- Enumerate the requested variants and start a run in the background
- Supersede the previous run in the same scope
- Persist settled runs as artifacts (or new versions), with manual retry
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from wrapstudio.core.dependencies import get_artifact_manager, get_orchestrator, get_registry
from wrapstudio.core.errors import PersistenceError, StaleRunResult
from wrapstudio.core.logger import logger
from wrapstudio.models.request_models import PersistRequest, RenderRequest
from wrapstudio.models.response_models import RenderStarted
from wrapstudio.models.variants import VariantPlan, cartesian_plan, flat_plan, pipeline_plan
from wrapstudio.services.artifact_manager import ArtifactManager
from wrapstudio.services.render_orchestrator import OrchestrationRun, RenderOrchestrator, RenderParams
from wrapstudio.services.run_registry import RunRegistry
from wrapstudio.services.tagging import build_tags, categorize_color

router = APIRouter(prefix="/renders", tags=["Renders"])

OPTION_FIELDS = (
    "color_hex",
    "color_name",
    "finish",
    "has_metallic_flakes",
    "custom_design_url",
    "labels",
)


def build_plan(request: RenderRequest) -> VariantPlan:
    if request.plan == "pipeline":
        if not request.variants:
            raise ValueError("A pipeline needs at least one stage")
        return pipeline_plan(request.variants, panels=request.panels)
    if request.plan == "cartesian":
        if not request.dimensions:
            raise ValueError("A cartesian plan needs dimensions")
        return cartesian_plan(list(request.dimensions.items()), include=request.include, panels=request.panels)
    if not request.variants:
        raise ValueError("A flat plan needs at least one variant key")
    return flat_plan(request.variants, sequential=request.sequential, panels=request.panels)


def build_params(request: RenderRequest) -> RenderParams:
    options = {}
    for name in OPTION_FIELDS:
        value = getattr(request, name)
        if value not in (None, [], False):
            options[name] = value
    return RenderParams(
        subject_attributes=request.subject.model_dump(exclude_none=True),
        mode=request.mode,
        options=options,
    )


def tags_for_run(run: OrchestrationRun):
    subject = run.params.subject_attributes
    options = run.params.options
    return build_tags(
        make=subject.get("make"),
        model=subject.get("model"),
        year=subject.get("year"),
        vehicle_type=subject.get("vehicle_type"),
        color_hex=options.get("color_hex"),
        color_name=options.get("color_name"),
        finish=options.get("finish"),
        mode=run.params.mode,
        uses_custom_design=bool(options.get("custom_design_url")),
        has_metallic_flakes=bool(options.get("has_metallic_flakes")),
        labels=options.get("labels", ()),
    )


async def persist(
    run: OrchestrationRun,
    manager: ArtifactManager,
    artifact_id: Optional[str] = None,
    change_description: Optional[str] = None,
):
    color_hex = run.params.options.get("color_hex")
    return await manager.persist_run(
        run,
        tags_for_run(run),
        artifact_id=artifact_id,
        change_description=change_description,
        color_category=categorize_color(color_hex) if color_hex else None,
    )


async def drive_run(
    run: OrchestrationRun,
    orchestrator: RenderOrchestrator,
    manager: ArtifactManager,
    auto_persist: bool,
    artifact_id: Optional[str] = None,
):
    """Render every variant, then write the artifact if anything completed."""
    await orchestrator.execute(run)

    if not auto_persist or not run.variant_results:
        return
    try:
        await persist(run, manager, artifact_id=artifact_id)
    except StaleRunResult as e:
        logger.info(str(e))
    except PersistenceError as e:
        # Results stay on the run; POST /renders/{run_id}/persist retries the write
        logger.error(f"Run {run.run_id} rendered but was not persisted: {e}")


@router.post("/", response_model=RenderStarted, status_code=202)
async def start_render(
    request: RenderRequest,
    background_tasks: BackgroundTasks,
    orchestrator: RenderOrchestrator = Depends(get_orchestrator),
    manager: ArtifactManager = Depends(get_artifact_manager),
    registry: RunRegistry = Depends(get_registry),
):
    """
    Enumerate the requested variants and render them in the background.

    Poll /status/{run_id} for per-variant progress.
    """
    try:
        plan = build_plan(request)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    run = orchestrator.create_run(plan, build_params(request))
    previous = registry.register(run, scope=request.scope)

    background_tasks.add_task(
        drive_run, run, orchestrator, manager, request.auto_persist, request.artifact_id
    )
    logger.info(f"Queued run {run.run_id} with {len(plan)} variant(s)")

    return RenderStarted(
        run_id=run.run_id,
        status="queued",
        variants=plan.keys,
        superseded_run_id=previous.run_id if previous else None,
    )


@router.post("/{run_id}/persist")
async def persist_render(
    run_id: str,
    body: Optional[PersistRequest] = None,
    manager: ArtifactManager = Depends(get_artifact_manager),
    registry: RunRegistry = Depends(get_registry),
):
    """Write (or retry writing) a finished run's artifact without re-rendering."""
    body = body or PersistRequest()
    try:
        run = registry.get(run_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")

    if not run.finished:
        raise HTTPException(status_code=409, detail=f"Run {run_id} is still rendering")
    if not run.variant_results:
        raise HTTPException(status_code=409, detail=f"Run {run_id} has no completed variants")

    try:
        record = await persist(
            run, manager, artifact_id=body.artifact_id, change_description=body.change_description
        )
    except StaleRunResult as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Persist failed for run {run_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return {"run_id": run_id, "record": record}
