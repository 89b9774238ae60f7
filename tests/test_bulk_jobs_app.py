"""API tests for the bulk job service and the unified gateway."""

import time

import pytest
from fastapi.testclient import TestClient

from app import app as gateway_app
from services.bulk_jobs.app import app, get_orchestrator


def wait_for_status(client: TestClient, url: str, expected, attempts: int = 200) -> dict:
    """Poll a status endpoint until ``state`` (or ``currentPhase``) matches."""
    body: dict = {}
    for _ in range(attempts):
        body = client.get(url, params={"include_details": "false"}).json()
        if body.get("state") == expected or body.get("currentPhase") == expected:
            return body
        time.sleep(0.01)
    raise AssertionError(f"{url} never reached {expected}: {body}")


@pytest.fixture
def api_client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def slow_api_client(slow_orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: slow_orchestrator
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


BULK_REQUEST = {
    "projectId": "proj-1",
    "filePaths": ["strings/app.json", "strings/web.json"],
    "targetLocales": ["es-ES", "fr-FR"],
    "priority": "high",
}


class TestBulkJobService:
    def test_health(self, api_client) -> None:
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_bulk_translate_returns_receipt(self, api_client) -> None:
        response = api_client.post("/bulk-translate", json=BULK_REQUEST)

        assert response.status_code == 200
        body = response.json()
        assert body["jobId"].startswith("job_")
        assert body["status"] == "queued"
        assert body["filesCount"] == 2
        assert body["localesCount"] == 2
        assert body["costEstimate"] == "$40.00"
        assert body["estimatedCompletion"] == "~10 minutes"
        assert body["jobId"] in body["nextStep"]

    def test_job_runs_to_completion(self, api_client) -> None:
        job_id = api_client.post("/bulk-translate", json=BULK_REQUEST).json()["jobId"]

        status = wait_for_status(api_client, f"/status/{job_id}", "completed")
        assert status["completed"] == status["total"] == 400
        assert status["currentPhase"] == "completed"
        assert "details" not in status

        detailed = api_client.get(f"/status/{job_id}").json()
        assert detailed["details"]["metrics"]["locales_completed"] == 2
        assert detailed["details"]["params"]["targetLocales"] == ["es-ES", "fr-FR"]
        assert len(detailed["details"]["subJobs"]) == 2

        results = api_client.get(f"/results/{job_id}").json()
        assert results["translatedStrings"] == 400
        assert results["finalCost"] == "$40.00"
        assert len(results["downloadLinks"]) == 2
        assert results["qualityMetrics"]["overallScore"] == 100.0
        assert "files" not in results
        assert len(results["fileSummary"]) == 2

        full = api_client.get(
            f"/results/{job_id}", params={"include_files": "true", "include_quality": "false"}
        ).json()
        assert "qualityMetrics" not in full
        assert "fileSummary" not in full
        assert full["files"][0]["locales"][0]["locale"] == "es-ES"

    def test_empty_locales_are_rejected(self, api_client) -> None:
        response = api_client.post("/bulk-translate", json={**BULK_REQUEST, "targetLocales": []})
        assert response.status_code == 400
        assert "target locale" in response.json()["detail"]

        jobs = api_client.get("/jobs").json()
        assert jobs["total"] == 0

    def test_missing_project_is_unprocessable(self, api_client) -> None:
        response = api_client.post("/bulk-translate", json={"filePaths": ["a.json"]})
        assert response.status_code == 422

    def test_unknown_job(self, api_client) -> None:
        assert api_client.get("/status/job_missing").status_code == 404
        assert api_client.get("/results/job_missing").status_code == 404
        response = api_client.post("/cancel/job_missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job job_missing not found"

    def test_cancel_completed_job(self, api_client) -> None:
        job_id = api_client.post("/bulk-translate", json=BULK_REQUEST).json()["jobId"]
        wait_for_status(api_client, f"/status/{job_id}", "completed")

        response = api_client.post(f"/cancel/{job_id}")
        assert response.status_code == 200
        assert response.json() == {
            "jobId": job_id,
            "cancelled": False,
            "message": "Job completed cannot be cancelled",
        }

    def test_list_jobs(self, api_client) -> None:
        first = api_client.post("/bulk-translate", json=BULK_REQUEST).json()["jobId"]
        second = api_client.post(
            "/bulk-translate", json={**BULK_REQUEST, "projectId": "proj-2"}
        ).json()["jobId"]
        wait_for_status(api_client, f"/status/{first}", "completed")
        wait_for_status(api_client, f"/status/{second}", "completed")

        body = api_client.get("/jobs").json()
        assert body["total"] == 2
        assert {job["id"] for job in body["jobs"]} == {first, second}
        assert body["jobs"][0]["progress"]["currentPhase"] == "completed"

        filtered = api_client.get("/jobs", params={"project_id": "proj-2"}).json()
        assert [job["id"] for job in filtered["jobs"]] == [second]

        by_type = api_client.get("/jobs", params={"type": "bulk_translation"}).json()
        assert by_type["total"] == 2
        assert api_client.get("/jobs", params={"status": "failed"}).json()["total"] == 0
        assert api_client.get("/jobs", params={"status": "bogus"}).status_code == 422


class TestCancellationEndpoints:
    def test_cancel_running_job(self, slow_api_client, smartling) -> None:
        job_id = slow_api_client.post("/bulk-translate", json=BULK_REQUEST).json()["jobId"]
        wait_for_status(slow_api_client, f"/status/{job_id}", "translating")

        conflict = slow_api_client.get(f"/results/{job_id}")
        assert conflict.status_code == 409
        assert "Current status: processing" in conflict.json()["detail"]

        response = slow_api_client.post(f"/cancel/{job_id}")
        assert response.json() == {
            "jobId": job_id,
            "cancelled": True,
            "message": "Job cancelled successfully",
        }

        status = slow_api_client.get(f"/status/{job_id}").json()
        assert status["state"] == "cancelled"
        assert status["estimatedCompletion"] == "N/A"
        assert slow_api_client.get(f"/results/{job_id}").status_code == 409

        second = slow_api_client.post(f"/cancel/{job_id}").json()
        assert second["cancelled"] is False


class TestGateway:
    def test_root_and_health(self) -> None:
        with TestClient(gateway_app) as client:
            root = client.get("/").json()
            assert root["services"]["bulk_jobs"]["base_url"] == "/api/v1/bulk-jobs"

            health = client.get("/health").json()
            assert health["status"] == "healthy"
            assert isinstance(health["jobs"], dict)

    def test_bulk_routes_are_mounted(self, orchestrator) -> None:
        gateway_app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        try:
            with TestClient(gateway_app) as client:
                job_id = client.post("/api/v1/bulk-jobs/bulk-translate", json=BULK_REQUEST).json()[
                    "jobId"
                ]
                status = wait_for_status(
                    client, f"/api/v1/bulk-jobs/status/{job_id}", "completed"
                )
                assert "details" not in status
                assert client.get("/api/v1/bulk-jobs/jobs").json()["total"] == 1
        finally:
            gateway_app.dependency_overrides.clear()

    def test_progress_websocket(self) -> None:
        with TestClient(gateway_app) as client:
            with client.websocket_connect("/ws/progress?client_id=client-1") as websocket:
                assert websocket.receive_json() == {"event": "connected", "client_id": "client-1"}

                websocket.send_json({"action": "ping"})
                assert websocket.receive_json() == {"event": "pong"}

                websocket.send_json({"action": "subscribe"})
                assert websocket.receive_json()["event"] == "error"

                websocket.send_json({"action": "subscribe", "job_id": "job-1"})
                assert websocket.receive_json() == {"event": "subscribed", "job_id": "job-1"}

                websocket.send_json({"action": "unsubscribe", "job_id": "job-1"})
                assert websocket.receive_json() == {"event": "unsubscribed", "job_id": "job-1"}

                websocket.send_json({"action": "dance"})
                assert websocket.receive_json() == {
                    "event": "error",
                    "message": "Unknown action: dance",
                }
