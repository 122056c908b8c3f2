import pytest
from fastapi.testclient import TestClient

from diagnostics_api import create_app
from diagnostics_api.dependencies import (
    get_diagnostic_service,
    get_diagnostic_worker_pool,
    get_ingestion_service
)
from diagnostics_api.services.diagnostic_service import DiagnosticService
from diagnostics_api.services.ingestion_service import IngestionService
from diagnostics_api.services.worker_pool_service import DiagnosticWorkerPool


@pytest.fixture
def client(worker, recording_queue, log_repository, job_queue):
    app = create_app()
    ingestion = IngestionService(queue=recording_queue, api_key="secret")
    diagnostics = DiagnosticService(worker=worker, queue=recording_queue, log_repository=log_repository)
    pool = DiagnosticWorkerPool(worker=worker, queue=job_queue, concurrency=2)

    app.dependency_overrides[get_ingestion_service] = lambda: ingestion
    app.dependency_overrides[get_diagnostic_service] = lambda: diagnostics
    app.dependency_overrides[get_diagnostic_worker_pool] = lambda: pool
    return TestClient(app)


def healthy_station(gateway, device_id="st1"):
    gateway.add_station(device_id)
    gateway.add_account("acc1")
    gateway.online.update({"r1", "ap1"})


# Webhook

def test_webhook_get_down_enqueues_job(client, recording_queue):
    response = client.get("/api/webhooks/network-event",
                          params={"deviceId": "d1", "status": "DOWN", "apiKey": "secret"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert [job.target_id for job in recording_queue.jobs] == ["d1"]


def test_webhook_post_down_enqueues_job(client, recording_queue):
    response = client.post("/api/webhooks/network-event",
                           json={"deviceId": "d1", "status": "down", "apiKey": "secret"})

    assert response.status_code == 200
    assert len(recording_queue.jobs) == 1


def test_webhook_up_is_acknowledged(client, recording_queue):
    response = client.get("/api/webhooks/network-event",
                          params={"deviceId": "d1", "status": "UP", "apiKey": "secret"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert recording_queue.jobs == []


def test_webhook_bad_key_is_401(client, recording_queue):
    response = client.get("/api/webhooks/network-event",
                          params={"deviceId": "d1", "status": "DOWN", "apiKey": "nope"})

    assert response.status_code == 401
    assert recording_queue.jobs == []


def test_webhook_missing_fields_is_400(client, recording_queue):
    response = client.post("/api/webhooks/network-event", json={"deviceId": "d1", "apiKey": "secret"})

    assert response.status_code == 400
    assert recording_queue.jobs == []


# Manual trigger

def test_async_run_queues_jobs(client, recording_queue):
    response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1", "st2", "st1"]})

    assert response.status_code == 202
    body = response.json()
    assert len(body["job_ids"]) == 2
    assert [job.target_id for job in recording_queue.jobs] == ["st1", "st2"]
    assert all(job.source == "manual" for job in recording_queue.jobs)


def test_sync_run_returns_logs(client, gateway):
    healthy_station(gateway)

    response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1"], "mode": "sync"})

    assert response.status_code == 200
    log = response.json()["logs"][0]
    assert log["target_id"] == "st1"
    assert log["target_type"] == "Device"
    assert [step["step_name"] for step in log["steps"]][:2] == ["Billing Check", "Mikrotik Router Check"]
    assert log["final_conclusion"].startswith("**All Clear:**")
    assert log["created_at"].endswith("+00:00")


def test_sync_run_with_held_lease_is_409(client, gateway, lease_repository):
    healthy_station(gateway)
    lease_repository.acquire("st1", 60)

    response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1"], "mode": "sync"})

    assert response.status_code == 409


def test_sync_run_with_gateway_down_is_503(client, gateway):
    gateway.unavailable = True

    response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1"], "mode": "sync"})

    assert response.status_code == 503


def test_sync_run_returns_finished_logs_when_a_later_target_is_busy(client, gateway, lease_repository,
                                                                     log_repository):
    healthy_station(gateway, "st1")
    healthy_station(gateway, "st2")
    lease_repository.acquire("st2", 60)

    response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1", "st2"], "mode": "sync"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert [log["target_id"] for log in body["logs"]] == ["st1"]
    (error,) = body["errors"]
    assert error["target_id"] == "st2"
    assert error["error"] == "lease_held"
    assert log_repository.count_logs_by_target("st1") == 1


def test_overlong_target_id_is_rejected_before_any_run(client, gateway, log_repository):
    gateway.add_account("u1", online=True)

    response = client.post("/api/v1/diagnostics/run",
                           json={"target_ids": ["u1", "x" * 101], "mode": "sync"})

    assert response.status_code == 400
    assert log_repository.count_logs_by_target("u1") == 0


def test_longest_allowed_target_id_gets_a_log(client, gateway, log_repository):
    target_id = "x" * 100
    gateway.add_account(target_id, online=True)

    response = client.post("/api/v1/diagnostics/run", json={"target_ids": [target_id], "mode": "sync"})

    assert response.status_code == 200
    assert log_repository.count_logs_by_target(target_id) == 1


def test_sync_timeout_must_exceed_run_deadline(worker, recording_queue, log_repository):
    with pytest.raises(ValueError):
        DiagnosticService(worker=worker, queue=recording_queue, log_repository=log_repository,
                          sync_timeout_seconds=worker.deadline_seconds)


@pytest.mark.parametrize("payload", [{"target_ids": []}, {"target_ids": ["st1"], "mode": "later"}])
def test_invalid_run_request_is_400(client, payload):
    response = client.post("/api/v1/diagnostics/run", json=payload)

    assert response.status_code == 400


# Log queries

def test_get_log_by_id(client, gateway):
    gateway.add_account("u1", online=True)
    client.post("/api/v1/diagnostics/run", json={"target_ids": ["u1"], "mode": "sync"})
    log_id = client.get("/api/v1/diagnostics/targets/u1/logs").json()[0]["id"]

    response = client.get(f"/api/v1/diagnostics/logs/{log_id}")

    assert response.status_code == 200
    assert response.json()["target_type"] == "User"


def test_missing_log_is_404(client):
    response = client.get("/api/v1/diagnostics/logs/12345")

    assert response.status_code == 404


def test_target_logs_newest_first(client, gateway):
    healthy_station(gateway)
    ids = []
    for _ in range(3):
        response = client.post("/api/v1/diagnostics/run", json={"target_ids": ["st1"], "mode": "sync"})
        ids.append(response.json()["logs"][0]["id"])

    response = client.get("/api/v1/diagnostics/targets/st1/logs", params={"limit": 2})

    assert response.status_code == 200
    assert [log["id"] for log in response.json()] == [ids[2], ids[1]]


# Worker pool

def test_worker_status(client):
    response = client.get("/api/v1/diagnostics/workers/status")

    assert response.status_code == 200
    body = response.json()
    assert body["is_running"] is False
    assert body["concurrency"] == 2
    assert body["queue_depth"] == 0


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
