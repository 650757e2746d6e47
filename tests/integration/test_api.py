"""API tests against the full app with a scripted provider."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from scenario_engine.api.app import create_app


@pytest.fixture
def client(settings, fake_provider_cls, make_item, to_json):
    provider = fake_provider_cls(
        default=to_json(
            make_item("Login locks after failures", ["Enter a wrong password three times"])
        )
    )
    app = create_app(settings, primary_provider=provider, fallback_provider=provider)
    with TestClient(app) as test_client:
        test_client.provider = provider
        yield test_client


def _page(page_id: str) -> dict:
    return {
        "page_id": page_id,
        "name": f"Page {page_id}",
        "title": f"Change for {page_id}",
        "description": "Lock the account after three failed logins",
        "acceptance_criteria": ["Account locks after three failures"],
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["provider"] == "ollama"
    assert body["fallback_provider"] == "ollama"
    assert "x-request-id" in response.headers


def test_batch_lifecycle(client):
    response = client.post("/batches", json={"pages": [_page("p1"), _page("p2")]})
    assert response.status_code == 202
    accepted = response.json()
    assert len(accepted["sub_jobs"]) == 2

    status = client.get(f"/batches/{accepted['batch_id']}").json()

    assert status["status"] == "completed"
    assert status["progress"] == {"total": 2, "completed": 2, "failed": 0, "in_progress": 0}
    results = status["sub_jobs"][0]["results"]
    assert results["total_scenarios"] == 1
    scenario = results["scenarios"][0]
    assert scenario["traceability"]["source_id"] == "p1"
    assert "ai-generated" in scenario["tags"]
    assert status["aggregation_results"] is None


def test_batch_with_module_aggregation(client, settings):
    response = client.post(
        "/batches",
        json={"pages": [_page("p1"), _page("p2")], "generate_module_level_tests": True},
    )
    batch_id = response.json()["batch_id"]

    status = client.get(f"/batches/{batch_id}").json()

    aggregation = status["aggregation_results"]
    assert aggregation["total_pages"] == 2
    assert aggregation["deduplicated_count"] == 1
    assert aggregation["summary"]["feature_list"] == ["Login locks after failures"]
    assert len(aggregation["module_level_scenarios"]) == 1

    assert (Path(settings.reports_dir) / f"{batch_id}_dedup.json").exists()


def test_empty_batch_rejected(client):
    assert client.post("/batches", json={"pages": []}).status_code == 422


def test_unknown_ids_return_404(client):
    assert client.get("/batches/missing").status_code == 404
    assert client.post("/batches/missing/cancel").status_code == 404
    assert client.get("/jobs/missing").status_code == 404


def test_cancel_finished_batch(client):
    batch_id = client.post("/batches", json={"pages": [_page("p1")]}).json()["batch_id"]
    response = client.post(f"/batches/{batch_id}/cancel")
    assert response.status_code == 200
    assert response.json() == {"batch_id": batch_id, "cancel_requested": False}


def test_module_without_scenarios_completes_empty(client):
    calls_before = len(client.provider.calls)
    response = client.post(
        "/modules/m1/generate", json={"name": "Auth", "pages": [{"page_id": "p1"}]}
    )
    assert response.status_code == 202
    job_id = response.json()["job_id"]

    job = client.get(f"/jobs/{job_id}").json()

    assert job["status"] == "completed"
    assert job["results"]["total_scenarios"] == 0
    assert len(client.provider.calls) == calls_before


def test_module_and_project_from_page_jobs(client):
    batch = client.post("/batches", json={"pages": [_page("p1"), _page("p2")]}).json()
    first, second = batch["sub_jobs"]

    module = client.post(
        "/modules/m1/generate",
        json={
            "name": "Auth",
            "pages": [
                {"page_id": "p1", "name": "Login", "latest_job_id": first},
                {"page_id": "p2", "name": "Lockout", "latest_job_id": second},
            ],
            "max_tests": 1,
        },
    ).json()
    module_job = client.get(f"/jobs/{module['job_id']}").json()

    assert module_job["status"] == "completed"
    [module_scenario] = module_job["results"]["scenarios"]
    assert "module-level" in module_scenario["tags"]
    assert module_scenario["validation_status"] == "needs_review"

    project = client.post(
        "/projects/proj-1/generate",
        json={
            "name": "Portal",
            "modules": [{"module_id": "m1", "name": "Auth", "latest_job_id": module["job_id"]}],
            "manual": {"document_key": "portal-manual", "text": "Accounts lock after failures."},
        },
    ).json()
    project_job = client.get(f"/jobs/{project['job_id']}").json()

    assert project_job["status"] == "completed"
    assert "project-level" in project_job["results"]["scenarios"][0]["tags"]
    assert "Accounts lock after failures." in client.provider.calls[-1][0][1].content
