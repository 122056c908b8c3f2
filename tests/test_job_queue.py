import asyncio

from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.services.job_queue import DatabaseJobQueue


def restarted(job_repository, visibility_timeout_seconds=60):
    """A fresh consumer over the same table, as after a process restart."""
    return DatabaseJobQueue(job_repository, visibility_timeout_seconds=visibility_timeout_seconds,
                            poll_interval_seconds=0.01)


async def test_jobs_are_delivered_oldest_first(job_queue):
    first = DiagnosticJob(target_id="d1")
    second = DiagnosticJob(target_id="d2", user_checks=["u1"])
    await job_queue.enqueue(first)
    await job_queue.enqueue(second)

    assert (await job_queue.consume()).job_id == first.job_id
    delivered = await job_queue.consume()
    assert delivered.job_id == second.job_id
    assert delivered.user_checks == ["u1"]
    assert job_queue.in_flight_count() == 2
    assert job_queue.pending_count() == 0


async def test_ack_removes_the_job(job_queue):
    await job_queue.enqueue(DiagnosticJob(target_id="d1"))
    job = await job_queue.consume()

    await job_queue.ack(job)

    assert job_queue.in_flight_count() == 0
    assert job_queue.pending_count() == 0


async def test_delayed_job_is_pending_until_due(job_queue):
    await job_queue.enqueue(DiagnosticJob(target_id="d1"), delay_seconds=0.05)

    assert job_queue.pending_count() == 1
    assert job_queue.repository.claim_next(job_queue.consumer_id, 60) is None
    job = await asyncio.wait_for(job_queue.consume(), timeout=1.0)
    assert job.target_id == "d1"
    assert job_queue.in_flight_count() == 1


async def test_pending_and_scheduled_jobs_survive_restart(job_queue, job_repository):
    await job_queue.enqueue(DiagnosticJob(target_id="d1"))
    retry = DiagnosticJob(target_id="d2").next_attempt()
    await job_queue.enqueue(retry, delay_seconds=0.05)

    queue = restarted(job_repository)

    assert queue.pending_count() == 2
    assert (await asyncio.wait_for(queue.consume(), timeout=1.0)).target_id == "d1"
    redelivered = await asyncio.wait_for(queue.consume(), timeout=1.0)
    assert redelivered.job_id == retry.job_id
    assert redelivered.attempt == 1


async def test_unacked_claim_is_redelivered_after_visibility_timeout(job_repository):
    crashed = restarted(job_repository, visibility_timeout_seconds=0.05)
    await crashed.enqueue(DiagnosticJob(target_id="d1"))
    job = await crashed.consume()

    queue = restarted(job_repository)

    assert queue.repository.claim_next(queue.consumer_id, 60) is None
    redelivered = await asyncio.wait_for(queue.consume(), timeout=1.0)
    assert redelivered.job_id == job.job_id


async def test_requeue_unacked_only_releases_own_claims(job_queue, job_repository):
    other = restarted(job_repository)
    await job_queue.enqueue(DiagnosticJob(target_id="d1"))
    await job_queue.enqueue(DiagnosticJob(target_id="d2"))
    await job_queue.consume()
    await other.consume()

    assert await job_queue.requeue_unacked() == 1
    assert job_queue.pending_count() == 1
    assert job_queue.in_flight_count() == 1


async def test_ack_keeps_a_retry_of_the_same_job(job_queue):
    await job_queue.enqueue(DiagnosticJob(target_id="d1"))
    job = await job_queue.consume()
    await job_queue.enqueue(job.next_attempt(), delay_seconds=30)

    await job_queue.ack(job)

    assert job_queue.pending_count() == 1
