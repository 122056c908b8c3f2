from functools import lru_cache

from diagnostics_api.config.settings import settings
from diagnostics_api.repositories.diagnostic_repositories import (
    DiagnosticJobRepository,
    DiagnosticLogRepository,
    TargetLeaseRepository
)
from diagnostics_api.services.diagnostic_service import DiagnosticService
from diagnostics_api.services.diagnostic_worker import DiagnosticWorker
from diagnostics_api.services.gateway_services import HttpDeviceGateway
from diagnostics_api.services.ingestion_service import IngestionService
from diagnostics_api.services.job_queue import DatabaseJobQueue
from diagnostics_api.services.neighbor_analysis_service import NeighborAnalysisService
from diagnostics_api.services.step_pipeline import StepPipeline
from diagnostics_api.services.worker_pool_service import (
    DiagnosticWorkerPool,
    get_worker_pool,
    initialize_worker_pool
)


@lru_cache()
def get_gateway() -> HttpDeviceGateway:
    return HttpDeviceGateway(
        base_url=settings.GATEWAY_BASE_URL,
        token=settings.GATEWAY_TOKEN,
        timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS
    )


@lru_cache()
def get_job_queue() -> DatabaseJobQueue:
    return DatabaseJobQueue(
        repository=DiagnosticJobRepository(),
        visibility_timeout_seconds=settings.JOB_VISIBILITY_TIMEOUT_SECONDS,
        poll_interval_seconds=settings.JOB_POLL_INTERVAL_SECONDS
    )


@lru_cache()
def get_log_repository() -> DiagnosticLogRepository:
    return DiagnosticLogRepository()


@lru_cache()
def get_lease_repository() -> TargetLeaseRepository:
    return TargetLeaseRepository()


@lru_cache()
def get_diagnostic_worker() -> DiagnosticWorker:
    gateway = get_gateway()
    pipeline = StepPipeline(
        gateway=gateway,
        neighbor_service=NeighborAnalysisService(gateway, fanout_limit=settings.NEIGHBOR_FANOUT_LIMIT),
        ping_attempts=settings.PING_ATTEMPTS,
        ping_retry_delay=settings.PING_RETRY_DELAY_SECONDS
    )
    return DiagnosticWorker(
        gateway=gateway,
        queue=get_job_queue(),
        log_repository=get_log_repository(),
        lease_repository=get_lease_repository(),
        pipeline=pipeline,
        lease_ttl_seconds=settings.LEASE_TTL_SECONDS,
        deadline_seconds=settings.PIPELINE_DEADLINE_SECONDS,
        max_retries=settings.JOB_MAX_RETRIES,
        retry_base_delay=settings.JOB_RETRY_BASE_DELAY_SECONDS
    )


def get_ingestion_service() -> IngestionService:
    return IngestionService(queue=get_job_queue(), api_key=settings.WEBHOOK_API_KEY)


def get_diagnostic_service() -> DiagnosticService:
    return DiagnosticService(
        worker=get_diagnostic_worker(),
        queue=get_job_queue(),
        log_repository=get_log_repository(),
        sync_timeout_seconds=settings.SYNC_TRIGGER_TIMEOUT_SECONDS
    )


def get_diagnostic_worker_pool() -> DiagnosticWorkerPool:
    pool = get_worker_pool()
    if pool is None:
        pool = initialize_worker_pool(worker=get_diagnostic_worker(), queue=get_job_queue())
    return pool
