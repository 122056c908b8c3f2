"""
Diagnostic worker.

Handles one job end to end: take the target lease, resolve the target, run
the step pipeline under the run deadline, synthesize the conclusion, persist
the log and release the lease. Infrastructure faults, and any other error
raised outside a step, are retried through the queue with exponential
backoff; once retries run out the run is still persisted with a terminal
Infrastructure Fault step.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from diagnostics_api.interfaces.diagnostic_interfaces import IDiagnosticLogRepository, ITargetLeaseRepository
from diagnostics_api.interfaces.gateway_interfaces import IDeviceGateway, IJobQueue
from diagnostics_api.models.diagnostics.diagnostic_log import DiagnosticLog
from diagnostics_api.models.diagnostics.enums import StepKind, StepStatus, TargetType
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.models.diagnostics.steps import DiagnosticStep
from diagnostics_api.services.conclusion_service import synthesize_conclusion
from diagnostics_api.services.step_pipeline import PipelineContext, StepPipeline
from diagnostics_api.utils.exceptions import GatewayUnavailableError, LeaseHeldError, TargetNotFoundError
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)


class DiagnosticWorker:
    """Runs diagnostic jobs. Safe to share between the tasks of a worker pool."""

    def __init__(self,
                 gateway: IDeviceGateway,
                 queue: IJobQueue,
                 log_repository: IDiagnosticLogRepository,
                 lease_repository: ITargetLeaseRepository,
                 pipeline: StepPipeline,
                 lease_ttl_seconds: float = 300,
                 deadline_seconds: float = 240.0,
                 max_retries: int = 3,
                 retry_base_delay: float = 2.0):
        """
        Args:
            gateway: Device/Account Gateway
            queue: Job queue used for retries
            log_repository: Diagnostic log store
            lease_repository: Per-target lease store
            pipeline: Step pipeline
            lease_ttl_seconds: Lease lifetime, must outlast the run deadline
            deadline_seconds: Wall-clock bound for one run
            max_retries: Queue-level retries for infrastructure faults
            retry_base_delay: Backoff base, doubled on every retry
        """
        self.gateway = gateway
        self.queue = queue
        self.log_repository = log_repository
        self.lease_repository = lease_repository
        self.pipeline = pipeline
        self.lease_ttl_seconds = lease_ttl_seconds
        self.deadline_seconds = deadline_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        if deadline_seconds >= lease_ttl_seconds:
            logger.warning(
                f"⚠️  Run deadline ({deadline_seconds}s) is not below the lease TTL ({lease_ttl_seconds}s); "
                f"a slow run could lose its lease"
            )

    @asynccontextmanager
    async def target_lease(self, target_id: str) -> AsyncIterator[str]:
        """Hold the lease for ``target_id`` for the duration of the block."""
        token = self.lease_repository.acquire(target_id, self.lease_ttl_seconds)
        if token is None:
            raise LeaseHeldError(target_id)
        try:
            yield token
        finally:
            self.lease_repository.release(target_id, token)

    async def process(self, job: DiagnosticJob) -> Optional[DiagnosticLog]:
        """
        Diagnose the target of ``job``.

        Returns:
            The persisted log, or None when the job was handed back to the
            queue for a retry.

        Raises:
            LeaseHeldError: another run for the same target is in progress
        """
        logger.info(f"🔍 Processing job {job.job_id} for target {job.target_id} (attempt {job.attempt})")

        async with self.target_lease(job.target_id):
            ctx = PipelineContext(target_id=job.target_id, target_type=job.target_type,
                                  user_checks=list(job.user_checks))
            steps: List[DiagnosticStep] = []
            try:
                await self._run_with_deadline(ctx, steps)
            except Exception as e:
                # Step errors never reach here; this is target resolution or the gateway itself
                reason = str(e) or type(e).__name__
                if isinstance(e, GatewayUnavailableError):
                    logger.error(f"❌ Infrastructure fault diagnosing {job.target_id}: {reason}")
                else:
                    logger.exception(f"❌ Unexpected {type(e).__name__} diagnosing {job.target_id}: {reason}")
                if job.attempt >= self.max_retries:
                    steps.append(DiagnosticStep(
                        kind=StepKind.INFRASTRUCTURE,
                        status=StepStatus.FAILURE,
                        summary=f"Diagnostic could not complete after {job.attempt + 1} attempt(s): {reason}",
                    ))
                    return self._persist(job, ctx.target_type, steps)
            else:
                return self._persist(job, ctx.target_type, steps)

        # Lease is released before the retry is scheduled
        delay = self.retry_base_delay * (2 ** job.attempt)
        retry = job.next_attempt()
        await self.queue.enqueue(retry, delay_seconds=delay)
        logger.info(f"🔁 Retry {retry.attempt}/{self.max_retries} for {job.target_id} in {delay:.1f}s")
        return None

    async def _run_with_deadline(self, ctx: PipelineContext, steps: List[DiagnosticStep]) -> None:
        try:
            await asyncio.wait_for(self._resolve_and_run(ctx, steps), timeout=self.deadline_seconds)
        except asyncio.TimeoutError:
            completed = len(steps)
            logger.warning(f"⏱️  Diagnostic for {ctx.target_id} timed out with {completed} step(s) completed")
            steps.append(DiagnosticStep(
                kind=StepKind.TIMEOUT,
                status=StepStatus.FAILURE,
                summary=f"Diagnostic timed out after {self.deadline_seconds:g}s with {completed} step(s) completed.",
            ))

    async def _resolve_and_run(self, ctx: PipelineContext, steps: List[DiagnosticStep]) -> None:
        try:
            await self.resolve_target(ctx)
        except TargetNotFoundError as e:
            steps.append(DiagnosticStep(kind=StepKind.TARGET_LOOKUP, status=StepStatus.FAILURE, summary=str(e)))
            return
        await self.pipeline.run(ctx, steps)

    async def resolve_target(self, ctx: PipelineContext) -> None:
        """Fill in the target type (and the device, for device targets)."""
        if ctx.target_type in (None, TargetType.DEVICE):
            device = await self.gateway.get_device_by_id(ctx.target_id)
            if device is not None:
                ctx.target_type = TargetType.DEVICE
                ctx.device = device
                return
            if ctx.target_type == TargetType.DEVICE:
                raise TargetNotFoundError(f"No device found with id {ctx.target_id}.")

        account = await self.gateway.get_account_status(ctx.target_id)
        if account is None:
            raise TargetNotFoundError(f"No device or subscriber found with id {ctx.target_id}.")
        ctx.target_type = TargetType.USER

    def _persist(self, job: DiagnosticJob, target_type: Optional[TargetType],
                 steps: List[DiagnosticStep]) -> DiagnosticLog:
        conclusion = synthesize_conclusion(steps)
        log = self.log_repository.create_log({
            'target_id': job.target_id,
            'target_type': target_type,
            'steps': [step.model_dump(mode="json") for step in steps],
            'final_conclusion': conclusion,
            'job_id': job.job_id,
            'trigger_source': job.source,
        })
        logger.info(f"✅ Diagnostic log {log.id} saved for {job.target_id}: {len(steps)} step(s)")
        return log
