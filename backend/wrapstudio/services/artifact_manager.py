"""
Artifact persistence.

Turns a settled run into a stored artifact, or into a new version of an
existing one. Every store call runs in the loop's default executor, so
each write is a suspension point for the orchestrator's event loop.

Version numbers are computed read-then-write (max + 1) without a lock or
transaction. Two writers racing on the same artifact can produce the same
version number; callers are single-user and low-frequency.
"""

import asyncio
import functools
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from wrapstudio.core.config import settings
from wrapstudio.core.database import ArtifactStore
from wrapstudio.core.errors import ArtifactNotFoundError, PersistenceError, StaleRunResult, StoreError
from wrapstudio.core.logger import get_logger
from wrapstudio.services.render_orchestrator import OrchestrationRun
from wrapstudio.services.tagging import slugify

logger = get_logger(__name__)


def _normalize_tags(tags: Iterable[str]) -> List[str]:
    return sorted({t.lower() for t in tags if t})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ArtifactManager:
    """Handles artifact and version records for render runs."""

    def __init__(
        self,
        store: ArtifactStore,
        artifacts_table: Optional[str] = None,
        versions_table: Optional[str] = None,
    ):
        self.store = store
        self.artifacts_table = artifacts_table or settings.ARTIFACTS_TABLE
        self.versions_table = versions_table or settings.ARTIFACT_VERSIONS_TABLE

    async def _call(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    # ==================== WRITES ====================

    async def create_artifact(
        self,
        subject_attributes: Dict[str, Any],
        variant_results: Dict[str, str],
        tags: Iterable[str],
        mode: Optional[str] = None,
        color_category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Write a new artifact at version 1, plus its first version row.

        Raises:
            PersistenceError: the store rejected either write
        """
        artifact = await self._insert_artifact(subject_attributes, variant_results, tags, mode, color_category)
        await self._insert_initial_version(artifact)
        return artifact

    async def _insert_artifact(self, subject_attributes, variant_results, tags, mode, color_category):
        record = {
            "subject_attributes": dict(subject_attributes),
            "variant_results": dict(variant_results),
            "tags": _normalize_tags(tags),
            "version": 1,
            "color_category": color_category,
            "mode": mode,
            "created_at": _now_iso(),
        }
        try:
            artifact = await self._call(self.store.insert, self.artifacts_table, record)
        except StoreError as e:
            logger.error(f"Failed to create artifact: {e}")
            raise PersistenceError(f"Failed to create artifact: {e}") from e

        logger.info(f"Created artifact {artifact['id']} with {len(variant_results)} variant(s)")
        return artifact

    async def _insert_initial_version(self, artifact: Dict[str, Any]):
        try:
            await self._call(
                self.store.insert,
                self.versions_table,
                {
                    "artifact_id": artifact["id"],
                    "version": 1,
                    "variant_results": dict(artifact["variant_results"]),
                    "change_description": "Initial render",
                    "created_at": artifact.get("created_at") or _now_iso(),
                },
            )
        except StoreError as e:
            logger.error(f"Failed to write version 1 of artifact {artifact['id']}: {e}")
            raise PersistenceError(f"Failed to write version 1 of artifact {artifact['id']}: {e}") from e

    async def create_version(
        self,
        artifact_id: str,
        variant_results: Dict[str, str],
        change_description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Write version max + 1 for an artifact lineage and point the artifact at it.

        Returns:
            The new version row
        """
        try:
            latest = await self._call(
                self.store.query,
                self.versions_table,
                filters={"artifact_id": artifact_id},
                order_by="version",
                descending=True,
                limit=1,
            )
            if latest:
                current = latest[0]["version"]
            else:
                artifact = await self.get_artifact(artifact_id)
                if artifact is None:
                    raise ArtifactNotFoundError(f"Artifact {artifact_id} not found")
                current = artifact.get("version") or 0

            next_version = current + 1
            version = await self._call(
                self.store.insert,
                self.versions_table,
                {
                    "artifact_id": artifact_id,
                    "version": next_version,
                    "variant_results": dict(variant_results),
                    "change_description": change_description,
                    "created_at": _now_iso(),
                },
            )
            await self._call(
                self.store.update,
                self.artifacts_table,
                artifact_id,
                {"version": next_version, "variant_results": dict(variant_results)},
            )
        except StoreError as e:
            logger.error(f"Failed to create version for artifact {artifact_id}: {e}")
            raise PersistenceError(f"Failed to create version for artifact {artifact_id}: {e}") from e

        logger.info(f"Saved artifact {artifact_id} v{next_version}")
        return version

    async def persist_run(
        self,
        run: OrchestrationRun,
        tags: Iterable[str],
        artifact_id: Optional[str] = None,
        change_description: Optional[str] = None,
        color_category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Persist a run's completed variants.

        Writes a new artifact, or a new version of `artifact_id` when given.
        A failed write leaves the run's results untouched, so calling this
        again retries the write without regenerating anything. An artifact
        row written before a failure is reused, so a run never produces
        more than one artifact. A run that was already persisted returns
        its stored row.

        Raises:
            StaleRunResult: the run was superseded
            PersistenceError: nothing completed, or the store rejected the write
        """
        if run.superseded:
            raise StaleRunResult(run.run_id)
        if run.artifact is not None:
            return run.artifact

        results = run.variant_results
        if not results:
            raise PersistenceError(f"Run {run.run_id} has no completed variants to persist")

        if artifact_id is not None:
            row = await self.create_version(
                artifact_id,
                results,
                change_description or f"Re-render ({run.params.mode})",
            )
        else:
            # The artifact row is kept on the run as soon as it exists, so a
            # retry after a failed version write only writes the version row.
            if run.pending_artifact is None:
                run.pending_artifact = await self._insert_artifact(
                    run.params.subject_attributes,
                    results,
                    tags,
                    run.params.mode,
                    color_category,
                )
            row = run.pending_artifact
            await self._insert_initial_version(row)

        run.artifact = row
        run.pending_artifact = None
        return row

    # ==================== QUERIES ====================

    async def get_artifact(self, artifact_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._call(self.store.query, self.artifacts_table, filters={"id": artifact_id}, limit=1)
        return rows[0] if rows else None

    async def find_artifacts(
        self,
        make: Optional[str] = None,
        model: Optional[str] = None,
        year=None,
        category: Optional[str] = None,
        text: Optional[str] = None,
        limit: Optional[int] = 50,
    ) -> List[Dict[str, Any]]:
        """
        Search artifacts.

        Args:
            make, model, year: equality on subject attributes
            category: derived color category
            text: free text, matched against tags after slugifying
        """
        filters: Dict[str, Any] = {}
        if make:
            filters["subject_attributes->>make"] = make
        if model:
            filters["subject_attributes->>model"] = model
        if year is not None:
            filters["subject_attributes->>year"] = str(year)
        if category:
            filters["color_category"] = category.lower()

        contains = {}
        if text and slugify(text):
            contains["tags"] = [slugify(text)]

        return await self._call(
            self.store.query,
            self.artifacts_table,
            filters=filters,
            contains=contains,
            order_by="created_at",
            descending=True,
            limit=limit,
        )

    async def get_version_history(self, artifact_id: str) -> List[Dict[str, Any]]:
        """All versions of an artifact, newest first."""
        return await self._call(
            self.store.query,
            self.versions_table,
            filters={"artifact_id": artifact_id},
            order_by="version",
            descending=True,
        )
