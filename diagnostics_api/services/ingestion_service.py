"""Inbound network-event handling."""

import hmac
from typing import Any, Dict, Optional

from diagnostics_api.interfaces.gateway_interfaces import IJobQueue
from diagnostics_api.models.diagnostics.jobs import MAX_TARGET_ID_LENGTH, DiagnosticJob
from diagnostics_api.utils.exceptions import BadRequestError, UnauthorizedError
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

DOWN_STATUS = "down"


class IngestionService:
    """
    Validates device status events and turns DOWN transitions into jobs.

    Duplicate DOWN events are not filtered here: the worker's target lease
    drops them while a diagnostic is already running.
    """

    def __init__(self, queue: IJobQueue, api_key: Optional[str]):
        self.queue = queue
        self.api_key = api_key

    def _check_api_key(self, api_key: Optional[str]) -> None:
        if not self.api_key:
            logger.error("❌ WEBHOOK_API_KEY is not configured; rejecting network event")
            raise UnauthorizedError("Webhook API key is not configured")
        if not api_key or not hmac.compare_digest(api_key.encode(), self.api_key.encode()):
            logger.warning("Network event rejected: invalid API key")
            raise UnauthorizedError("Invalid API key")

    async def handle_event(self, device_id: Optional[str], status: Optional[str],
                           api_key: Optional[str]) -> Dict[str, Any]:
        """
        Handle one network event.

        Returns:
            Acknowledgement, with the job id when a diagnostic was queued

        Raises:
            UnauthorizedError: wrong or missing API key
            BadRequestError: deviceId or status missing, or deviceId too long
        """
        self._check_api_key(api_key)

        if not device_id or not status:
            raise BadRequestError("Missing deviceId or status")
        if len(device_id) > MAX_TARGET_ID_LENGTH:
            raise BadRequestError(f"deviceId must be at most {MAX_TARGET_ID_LENGTH} characters")

        if status.strip().lower() != DOWN_STATUS:
            logger.info(f"Network event for {device_id}: status={status}, no diagnostic needed")
            return {'success': True, 'queued': False}

        job = DiagnosticJob(target_id=device_id, source="webhook")
        await self.queue.enqueue(job)
        logger.info(f"🚨 Device {device_id} reported DOWN, queued diagnostic job {job.job_id}")
        return {'success': True, 'queued': True, 'job_id': job.job_id}
