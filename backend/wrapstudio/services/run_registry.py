"""
Run identity and supersede tracking.

Maps scopes to their active run and keeps finished runs around for the
status endpoints until the registry is full.
"""

from collections import OrderedDict
from typing import Dict, List, Optional

from wrapstudio.core.logger import get_logger
from wrapstudio.services.render_orchestrator import OrchestrationRun

logger = get_logger(__name__)


class RunRegistry:
    """
    Tracks which run is active for each scope (a user session, an order,
    a design project). Starting a new run in a scope supersedes the old
    one; the old run keeps going but its late results are discarded.

    One registry per application instance; runs are never shared between
    registries.
    """

    def __init__(self, max_runs: int = 500):
        self.max_runs = max_runs
        self.runs: "OrderedDict[str, OrchestrationRun]" = OrderedDict()
        self.active_runs: Dict[str, str] = {}
        self.run_scopes: Dict[str, str] = {}

    def register(self, run: OrchestrationRun, scope: Optional[str] = None) -> Optional[OrchestrationRun]:
        """Add a run, superseding the scope's previous run. Returns the superseded run."""
        previous = None
        if scope is not None:
            previous_id = self.active_runs.get(scope)
            if previous_id is not None and previous_id in self.runs:
                previous = self.runs[previous_id]
                previous.supersede()
                logger.info(f"Run {previous_id} superseded by {run.run_id} in scope {scope}")
            self.active_runs[scope] = run.run_id
            self.run_scopes[run.run_id] = scope

        self.runs[run.run_id] = run
        self._evict()
        return previous

    def get(self, run_id: str) -> OrchestrationRun:
        try:
            return self.runs[run_id]
        except KeyError:
            raise KeyError(f"Unknown run {run_id}") from None

    def active(self, scope: str) -> Optional[OrchestrationRun]:
        run_id = self.active_runs.get(scope)
        return self.runs.get(run_id) if run_id else None

    def is_active(self, run: OrchestrationRun) -> bool:
        return not run.superseded and run.run_id in self.runs

    def list_runs(self) -> List[OrchestrationRun]:
        return list(self.runs.values())

    def _evict(self):
        # Only finished runs are dropped; in-flight runs stay addressable
        while len(self.runs) > self.max_runs:
            victim = next((rid for rid, r in self.runs.items() if r.finished), None)
            if victim is None:
                break
            self.runs.pop(victim)
            scope = self.run_scopes.pop(victim, None)
            if scope is not None and self.active_runs.get(scope) == victim:
                del self.active_runs[scope]
