"""
Diagnostic worker pool.

A fixed number of asyncio tasks pull jobs from the queue. Each task finishes
one job before taking the next; different targets run in parallel across
tasks.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from diagnostics_api.config.settings import settings
from diagnostics_api.interfaces.gateway_interfaces import IJobQueue
from diagnostics_api.services.diagnostic_worker import DiagnosticWorker
from diagnostics_api.utils.exceptions import LeaseHeldError
from diagnostics_api.utils.logger import get_logger
from diagnostics_api.utils.timezone import now_utc, to_utc_isoformat

logger = get_logger(__name__)

QUEUE_ERROR_BACKOFF_SECONDS = 5.0


class DiagnosticWorkerPool:
    """Start/stop/status lifecycle around a set of worker tasks."""

    def __init__(self, worker: DiagnosticWorker, queue: IJobQueue, concurrency: int = 4, enabled: bool = False):
        self.worker = worker
        self.queue = queue
        self.concurrency = max(1, concurrency)
        self.enabled = enabled
        self.is_running = False
        self.tasks: List[asyncio.Task] = []
        self.started_at: Optional[datetime] = None
        self.processed = 0
        self.dropped = 0
        self.failed = 0
        self.last_error: Optional[str] = None

        logger.info(f"Worker pool initialized: enabled={enabled}, concurrency={self.concurrency}")

    async def start(self) -> Dict[str, Any]:
        if self.is_running:
            logger.warning("Worker pool is already running")
            return {
                'success': False,
                'message': 'Worker pool is already running',
                'is_running': True
            }

        self.enabled = True
        self.is_running = True
        self.started_at = now_utc()
        self.tasks = [asyncio.create_task(self._worker_loop(i)) for i in range(self.concurrency)]

        logger.info(f"🔄 Worker pool started with {self.concurrency} worker(s)")

        return {
            'success': True,
            'message': 'Worker pool started successfully',
            'is_running': True,
            'concurrency': self.concurrency
        }

    async def stop(self) -> Dict[str, Any]:
        """
        Stop every worker task.

        Jobs that were taken but not finished go back to the queue; their
        leases are released when the cancelled run unwinds.
        """
        if not self.is_running:
            logger.warning("Worker pool is not running")
            return {
                'success': False,
                'message': 'Worker pool is not running',
                'is_running': False
            }

        self.enabled = False
        self.is_running = False

        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        requeued = await self.queue.requeue_unacked()
        logger.info("⏹️  Worker pool stopped")

        return {
            'success': True,
            'message': 'Worker pool stopped successfully',
            'is_running': False,
            'requeued_jobs': requeued
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            'is_running': self.is_running,
            'enabled': self.enabled,
            'concurrency': self.concurrency,
            'queue_depth': self.queue.pending_count(),
            'processed': self.processed,
            'dropped': self.dropped,
            'failed': self.failed,
            'last_error': self.last_error,
            'started_at': to_utc_isoformat(self.started_at)
        }

    async def _worker_loop(self, index: int):
        logger.info(f"Worker {index} waiting for jobs")

        while self.is_running:
            try:
                job = await self.queue.consume()
            except Exception as e:
                self.last_error = str(e)
                logger.error(f"❌ Worker {index} could not read the job queue: {str(e)}")
                await asyncio.sleep(QUEUE_ERROR_BACKOFF_SECONDS)
                continue

            try:
                await self.worker.process(job)
                self.processed += 1
            except LeaseHeldError as e:
                # Already being diagnosed; the running job covers this event
                self.dropped += 1
                logger.warning(f"⚠️  Dropped job {job.job_id}: {str(e)}")
            except Exception as e:
                self.failed += 1
                self.last_error = str(e)
                logger.error(f"❌ Worker {index} failed job {job.job_id}: {str(e)}")
            try:
                await self.queue.ack(job)
            except Exception as e:
                # The claim expires and the job is delivered again
                self.last_error = str(e)
                logger.error(f"❌ Worker {index} could not ack job {job.job_id}: {str(e)}")

        logger.info(f"🛑 Worker {index} stopped")


# Global worker pool instance (singleton)
_worker_pool: Optional[DiagnosticWorkerPool] = None


def get_worker_pool() -> Optional[DiagnosticWorkerPool]:
    """
    Get the global worker pool.

    Returns:
        Worker pool or None if not initialized
    """
    return _worker_pool


def initialize_worker_pool(worker: DiagnosticWorker, queue: IJobQueue) -> DiagnosticWorkerPool:
    """Create the global worker pool from settings."""
    global _worker_pool

    _worker_pool = DiagnosticWorkerPool(
        worker=worker,
        queue=queue,
        concurrency=settings.WORKER_CONCURRENCY,
        enabled=settings.WORKERS_ENABLED
    )
    return _worker_pool
