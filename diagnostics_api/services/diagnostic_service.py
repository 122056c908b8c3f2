"""Manual diagnostic trigger and log queries."""

import asyncio
from typing import Any, Dict, List, Optional

from diagnostics_api.interfaces.diagnostic_interfaces import IDiagnosticLogRepository
from diagnostics_api.interfaces.gateway_interfaces import IJobQueue
from diagnostics_api.models.diagnostics.jobs import MAX_TARGET_ID_LENGTH, DiagnosticJob
from diagnostics_api.schema.diagnostic_schemas import diagnostic_log_schema, diagnostic_logs_schema
from diagnostics_api.services.diagnostic_worker import DiagnosticWorker
from diagnostics_api.utils.exceptions import (
    BadRequestError,
    DiagnosticsError,
    GatewayUnavailableError,
    LeaseHeldError,
    LogNotFoundError
)
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

SYNC_MODE = "sync"
ASYNC_MODE = "async"

LEASE_HELD = "lease_held"
GATEWAY_UNAVAILABLE = "gateway_unavailable"


class DiagnosticService:
    """Operator-facing entry points of the diagnostic engine."""

    def __init__(self,
                 worker: DiagnosticWorker,
                 queue: IJobQueue,
                 log_repository: IDiagnosticLogRepository,
                 sync_timeout_seconds: float = 300.0):
        # The worker must get to write its own timeout step first
        if sync_timeout_seconds <= worker.deadline_seconds:
            raise ValueError(
                f"sync_timeout_seconds ({sync_timeout_seconds}) must be greater than the run deadline "
                f"({worker.deadline_seconds})"
            )
        self.worker = worker
        self.queue = queue
        self.log_repository = log_repository
        self.sync_timeout_seconds = sync_timeout_seconds

    async def trigger(self, target_ids: List[str], user_checks: Optional[List[str]] = None,
                      mode: str = ASYNC_MODE) -> Dict[str, Any]:
        """
        Start diagnostics for one or more targets.

        In async mode the jobs are queued and their ids returned. In sync mode
        every target is diagnosed in turn; finished logs and per-target errors
        are returned together so no completed run is hidden by a later one.

        Raises:
            BadRequestError: no targets, a target id too long, or unknown mode
            LeaseHeldError: sync mode and no target could be diagnosed (first error)
            GatewayUnavailableError: same, when the first error was a gateway fault
        """
        targets = list(dict.fromkeys(t.strip() for t in target_ids if t and t.strip()))
        if not targets:
            raise BadRequestError("At least one target id is required")
        if any(len(t) > MAX_TARGET_ID_LENGTH for t in targets):
            raise BadRequestError(f"Target ids must be at most {MAX_TARGET_ID_LENGTH} characters")
        if mode not in (SYNC_MODE, ASYNC_MODE):
            raise BadRequestError(f"Unknown mode '{mode}', expected '{SYNC_MODE}' or '{ASYNC_MODE}'")

        jobs = [DiagnosticJob(target_id=t, user_checks=list(user_checks or []), source="manual") for t in targets]
        logger.info(f"Manual diagnostic ({mode}) requested for {len(jobs)} target(s)")

        if mode == ASYNC_MODE:
            for job in jobs:
                await self.queue.enqueue(job)
            return {
                'success': True,
                'mode': ASYNC_MODE,
                'job_ids': [job.job_id for job in jobs]
            }

        logs = []
        errors: List[Dict[str, str]] = []
        failures: List[DiagnosticsError] = []
        for job in jobs:
            try:
                logs.append(await self._run_sync(job))
            except LeaseHeldError as e:
                failures.append(e)
                errors.append({'target_id': job.target_id, 'error': LEASE_HELD, 'message': str(e)})
            except GatewayUnavailableError as e:
                failures.append(e)
                errors.append({'target_id': job.target_id, 'error': GATEWAY_UNAVAILABLE, 'message': str(e)})

        if not logs:
            raise failures[0]

        if errors:
            logger.warning(f"Manual diagnostic finished {len(logs)} of {len(jobs)} target(s)")

        return {
            'success': not errors,
            'mode': SYNC_MODE,
            'logs': diagnostic_logs_schema.dump(logs),
            'errors': errors
        }

    async def _run_sync(self, job: DiagnosticJob):
        try:
            log = await asyncio.wait_for(self.worker.process(job), timeout=self.sync_timeout_seconds)
        except asyncio.TimeoutError:
            raise GatewayUnavailableError(
                f"Diagnostic for {job.target_id} did not finish within {self.sync_timeout_seconds:g}s"
            )
        if log is None:
            raise GatewayUnavailableError(
                f"Diagnostic for {job.target_id} hit an infrastructure fault; a retry has been queued"
            )
        return log

    def get_log(self, log_id: int) -> Dict[str, Any]:
        log = self.log_repository.get_log_by_id(log_id)
        if log is None:
            raise LogNotFoundError(f"Diagnostic log {log_id} not found")
        return diagnostic_log_schema.dump(log)

    def list_logs_for_target(self, target_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Logs of one target, newest first."""
        return diagnostic_logs_schema.dump(self.log_repository.get_logs_by_target(target_id, limit=limit))
