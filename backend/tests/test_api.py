import pytest
from fastapi.testclient import TestClient

from wrapstudio.main import create_app
from wrapstudio.services.render_orchestrator import RenderOrchestrator
from wrapstudio.services.run_registry import RunRegistry

from conftest import FakeBackend

RENDER_BODY = {
    "subject": {"make": "Tesla", "model": "Model S", "year": 2024, "vehicle_type": "Sedan"},
    "mode": "hero",
    "plan": "flat",
    "variants": ["hero", "side", "rear", "detail"],
    "color_hex": "#FF6600",
    "color_name": "Sunset Orange",
    "finish": "Gloss",
}


@pytest.fixture
def backend():
    return FakeBackend(fail={"rear"})


@pytest.fixture
def registry():
    return RunRegistry()


@pytest.fixture
def client(backend, manager, registry):
    app = create_app(orchestrator=RenderOrchestrator(backend), artifact_manager=manager, registry=registry)
    return TestClient(app)


def test_health(client):
    assert client.get("/").status_code == 200


def test_render_status_and_artifact(client, store):
    response = client.post("/api/v1/renders/", json=RENDER_BODY)
    assert response.status_code == 202
    started = response.json()
    assert started["variants"] == ["hero", "side", "rear", "detail"]

    status = client.get(f"/api/v1/status/{started['run_id']}").json()
    assert status["finished"] is True
    assert status["settled"] is True
    assert status["progress_percentage"] == 100
    assert status["counts"] == {"pending": 0, "generating": 0, "complete": 3, "error": 1}
    assert set(status["variant_results"]) == {"hero", "side", "detail"}
    assert status["artifact_id"]
    assert status["stale_results"] == 0

    artifact = store.tables["artifacts"][0]
    assert artifact["color_category"] == "orange"
    assert {"tesla", "model-s", "2024", "sedan", "sunset-orange", "gloss", "orange", "hero"} == set(artifact["tags"])

    found = client.get("/api/v1/artifacts/", params={"category": "orange", "q": "Model S"}).json()
    assert found["total"] == 1


def test_pipeline_request_reports_blocked_stages(client, backend):
    backend.fail = {"3d-proof"}
    body = dict(RENDER_BODY, plan="pipeline", variants=["flat-panel", "3d-proof", "print-file"])

    run_id = client.post("/api/v1/renders/", json=body).json()["run_id"]
    status = client.get(f"/api/v1/status/{run_id}").json()

    assert {job["variant_key"]: job["status"] for job in status["jobs"]} == {
        "flat-panel": "complete",
        "3d-proof": "error",
        "print-file": "pending",
    }
    assert status["blocked_stages"] == ["print-file"]


def test_invalid_plan_rejected(client):
    body = dict(RENDER_BODY, variants=["hero", "hero"])
    assert client.post("/api/v1/renders/", json=body).status_code == 422


def test_new_run_in_scope_supersedes_previous(client, registry):
    first = client.post("/api/v1/renders/", json=dict(RENDER_BODY, scope="order-1001")).json()
    second = client.post("/api/v1/renders/", json=dict(RENDER_BODY, scope="order-1001")).json()

    assert second["superseded_run_id"] == first["run_id"]
    assert registry.get(first["run_id"]).superseded
    assert registry.active("order-1001").run_id == second["run_id"]

    persist = client.post(f"/api/v1/renders/{first['run_id']}/persist")
    # superseded runs are never written again
    assert persist.status_code == 409


def test_persist_retry_after_store_failure(client, store):
    store.fail_inserts = 1
    run_id = client.post("/api/v1/renders/", json=RENDER_BODY).json()["run_id"]

    status = client.get(f"/api/v1/status/{run_id}").json()
    assert status["artifact_id"] is None

    retry = client.post(f"/api/v1/renders/{run_id}/persist")
    assert retry.status_code == 200
    assert set(retry.json()["record"]["variant_results"]) == {"hero", "side", "detail"}


def test_artifact_versions_endpoints(client, manager):
    run_id = client.post("/api/v1/renders/", json=RENDER_BODY).json()["run_id"]
    artifact_id = client.get(f"/api/v1/status/{run_id}").json()["artifact_id"]

    created = client.post(
        f"/api/v1/artifacts/{artifact_id}/versions",
        json={"variant_results": {"hero": "https://cdn.example.com/v2.png"}, "change_description": "matte finish"},
    )
    assert created.status_code == 201
    assert created.json()["version"] == 2

    history = client.get(f"/api/v1/artifacts/{artifact_id}/versions").json()
    assert [v["version"] for v in history["versions"]] == [2, 1]

    assert client.get("/api/v1/artifacts/missing/versions").status_code == 404
    missing = client.post("/api/v1/artifacts/missing/versions", json={"variant_results": {"hero": "u"}})
    assert missing.status_code == 404


def test_unknown_run(client):
    assert client.get("/api/v1/status/nope").status_code == 404
    assert client.post("/api/v1/renders/nope/persist").status_code == 404


def test_summary(client):
    client.post("/api/v1/renders/", json=RENDER_BODY)
    summary = client.get("/api/v1/status/summary").json()
    assert summary["total_runs"] == 1
    assert summary["by_state"] == {"settled": 1}


def test_default_orchestrator_uses_configured_timeouts(manager, registry, monkeypatch):
    from types import SimpleNamespace

    from wrapstudio.core.config import settings
    from wrapstudio.core.dependencies import get_orchestrator

    monkeypatch.setattr(settings, "GENERATION_URL", "https://render.example.com/generate")
    monkeypatch.setattr(settings, "RENDER_TIMEOUT_SECONDS", 90.0)
    monkeypatch.setattr(settings, "GENERATION_REQUEST_TIMEOUT", 60.0)

    app = create_app(artifact_manager=manager, registry=registry)
    orchestrator = get_orchestrator(SimpleNamespace(app=app))

    assert orchestrator.timeout == 90.0
    assert orchestrator.backend.request_timeout == 60.0
