import asyncio

import pytest

from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.services.diagnostic_worker import DiagnosticWorker
from diagnostics_api.services.worker_pool_service import DiagnosticWorkerPool


@pytest.fixture
def pool(gateway, job_queue, log_repository, lease_repository, pipeline):
    worker = DiagnosticWorker(gateway=gateway, queue=job_queue, log_repository=log_repository,
                              lease_repository=lease_repository, pipeline=pipeline,
                              lease_ttl_seconds=60, deadline_seconds=5.0)
    return DiagnosticWorkerPool(worker=worker, queue=job_queue, concurrency=2)


async def wait_for_jobs(pool, count, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while pool.processed + pool.dropped + pool.failed < count:
        assert loop.time() < deadline, "worker pool did not finish in time"
        await asyncio.sleep(0.01)


async def test_pool_processes_queued_jobs(pool, job_queue, gateway, log_repository):
    gateway.add_account("u1", online=True)
    gateway.add_account("u2", online=True)

    await pool.start()
    await job_queue.enqueue(DiagnosticJob(target_id="u1"))
    await job_queue.enqueue(DiagnosticJob(target_id="u2"))
    await wait_for_jobs(pool, 2)
    result = await pool.stop()

    assert result['success'] is True
    assert pool.processed == 2
    assert log_repository.count_logs_by_target("u1") == 1
    assert log_repository.count_logs_by_target("u2") == 1
    assert job_queue.in_flight_count() == 0


async def test_duplicate_job_is_dropped_while_running(pool, job_queue, gateway, log_repository):
    gateway.add_account("u1", online=True)
    gateway.default_ping_delay = 0.1

    await pool.start()
    await job_queue.enqueue(DiagnosticJob(target_id="u1"))
    await job_queue.enqueue(DiagnosticJob(target_id="u1"))
    await wait_for_jobs(pool, 2)
    await pool.stop()

    assert pool.processed == 1
    assert pool.dropped == 1
    assert log_repository.count_logs_by_target("u1") == 1


async def test_start_twice_and_stop_when_idle(pool):
    assert (await pool.stop())['success'] is False

    assert (await pool.start())['success'] is True
    assert (await pool.start())['success'] is False
    assert pool.get_status()['is_running'] is True

    await pool.stop()
    assert pool.get_status()['is_running'] is False


async def test_stop_requeues_unfinished_job(pool, job_queue, gateway, lease_repository):
    gateway.add_account("u1", online=True)
    gateway.default_ping_delay = 5.0

    await pool.start()
    await job_queue.enqueue(DiagnosticJob(target_id="u1"))
    while job_queue.in_flight_count() == 0:
        await asyncio.sleep(0.01)
    result = await pool.stop()

    assert result['requeued_jobs'] == 1
    assert job_queue.pending_count() == 1
    assert not lease_repository.is_held("u1")



async def test_retry_survives_ack_of_the_failed_attempt(pool, job_queue, gateway, log_repository):
    gateway.unavailable = True
    pool.worker.retry_base_delay = 30.0

    await pool.start()
    await job_queue.enqueue(DiagnosticJob(target_id="st1"))
    await wait_for_jobs(pool, 1)
    await pool.stop()

    assert pool.processed == 1
    assert log_repository.count_logs_by_target("st1") == 0
    assert job_queue.pending_count() == 1
    assert job_queue.in_flight_count() == 0


async def test_queue_read_error_does_not_kill_worker(pool, job_queue, monkeypatch):
    calls = []

    def broken_claim(consumer_id, visibility_timeout_seconds):
        calls.append(consumer_id)
        raise RuntimeError("Database error: locked")

    monkeypatch.setattr(job_queue.repository, "claim_next", broken_claim)
    monkeypatch.setattr("diagnostics_api.services.worker_pool_service.QUEUE_ERROR_BACKOFF_SECONDS", 0.01)

    await pool.start()
    while len(calls) < 3:
        await asyncio.sleep(0.01)
    status = pool.get_status()
    await pool.stop()

    assert status['is_running'] is True
    assert status['last_error'] == "Database error: locked"
