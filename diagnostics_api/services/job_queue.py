"""
Database-backed diagnostic job queue.

Jobs live in the ``diagnostic_jobs`` table, so pending work, scheduled
retries and claimed-but-unfinished jobs all survive a restart. Delivery is
at-least-once: a consumed job stays claimed until it is acked, and a claim
that is never acked (the consumer died) expires after the visibility timeout
and the job is delivered again.
"""

import asyncio
import uuid
from datetime import timedelta

from diagnostics_api.interfaces.diagnostic_interfaces import IDiagnosticJobRepository
from diagnostics_api.interfaces.gateway_interfaces import IJobQueue
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.utils.logger import get_logger
from diagnostics_api.utils.timezone import now_utc

logger = get_logger(__name__)


class DatabaseJobQueue(IJobQueue):
    """Polling consumer over the persisted job table."""

    def __init__(self, repository: IDiagnosticJobRepository,
                 visibility_timeout_seconds: float = 360.0,
                 poll_interval_seconds: float = 1.0):
        """
        Args:
            repository: Job table repository
            visibility_timeout_seconds: How long a claim lasts without an ack
            poll_interval_seconds: Sleep between polls of an empty queue
        """
        self.repository = repository
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        # Identifies this process's claims so they can be handed back on stop
        self.consumer_id = uuid.uuid4().hex

    async def enqueue(self, job: DiagnosticJob, delay_seconds: float = 0.0) -> None:
        self.repository.add_job(job, now_utc() + timedelta(seconds=max(0.0, delay_seconds)))
        if delay_seconds > 0:
            logger.info(f"Job {job.job_id} for {job.target_id} scheduled in {delay_seconds:.1f}s (attempt {job.attempt})")
        else:
            logger.info(f"Enqueued job {job.job_id} for target {job.target_id}")

    async def consume(self) -> DiagnosticJob:
        while True:
            job = self.repository.claim_next(self.consumer_id, self.visibility_timeout_seconds)
            if job is not None:
                return job
            await asyncio.sleep(self.poll_interval_seconds)

    async def ack(self, job: DiagnosticJob) -> None:
        self.repository.complete(job.job_id, job.attempt)

    async def requeue_unacked(self) -> int:
        """Hand every job claimed by this consumer back to the queue. Returns how many."""
        count = self.repository.release_claimed(self.consumer_id)
        if count:
            logger.warning(f"Requeued {count} unacknowledged job(s)")
        return count

    def pending_count(self) -> int:
        return self.repository.count_pending()

    def in_flight_count(self) -> int:
        return self.repository.count_in_flight()
