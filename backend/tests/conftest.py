import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from wrapstudio.core.database import ArtifactStore
from wrapstudio.core.errors import StoreError, VariantGenerationError
from wrapstudio.services.artifact_manager import ArtifactManager
from wrapstudio.services.generation_service import GenerationBackend


def variant_key(request):
    fields = request.variant_fields
    if "stage" in fields:
        return fields["stage"]
    values = [v for k, v in fields.items() if k not in ("panels", "source_image_url")]
    return "-".join(values)


class FakeBackend(GenerationBackend):
    """Resolves every variant to a predictable URL unless told otherwise."""

    def __init__(self, fail=(), hang=(), delays=None, on_call=None):
        self.fail = set(fail)
        self.hang = set(hang)
        self.delays = delays or {}
        self.on_call = on_call
        self.calls = []

    async def generate(self, request):
        key = variant_key(request)
        self.calls.append(request)
        if self.on_call:
            self.on_call(request)

        await asyncio.sleep(self.delays.get(key, 0))
        if key in self.hang:
            await asyncio.sleep(3600)
        if key in self.fail:
            raise VariantGenerationError(f"{key} render failed", variant_key=key)
        return f"https://cdn.example.com/renders/{key}.png"

    @property
    def called_keys(self):
        return [variant_key(r) for r in self.calls]


class MemoryStore(ArtifactStore):
    """Dict-backed store honouring the same filters as the Supabase store."""

    def __init__(self):
        self.tables = {}
        self.fail_inserts = 0

    def insert(self, table, record):
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise StoreError(f"Insert into {table} rejected: simulated outage")
        row = {"id": uuid.uuid4().hex, "created_at": datetime.now(timezone.utc).isoformat(), **record}
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def query(self, table, filters=None, contains=None, order_by=None, descending=False, limit=None):
        rows = [dict(r) for r in self.tables.get(table, [])]
        for column, value in (filters or {}).items():
            rows = [r for r in rows if str(_resolve(r, column)) == str(value)]
        for column, values in (contains or {}).items():
            rows = [r for r in rows if set(values) <= set(r.get(column) or [])]
        if order_by:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def update(self, table, record_id, partial):
        for row in self.tables.get(table, []):
            if row["id"] == record_id:
                row.update(partial)
                return dict(row)
        raise StoreError(f"{table} record {record_id} not found")


def _resolve(row, column):
    if "->>" in column:
        parent, child = column.split("->>", 1)
        return (row.get(parent) or {}).get(child)
    return row.get(column)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager(store):
    return ArtifactManager(store, artifacts_table="artifacts", versions_table="artifact_versions")
