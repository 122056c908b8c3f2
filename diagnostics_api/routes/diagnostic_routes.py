"""
Routes for manual diagnostics, diagnostic logs and the worker pool
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from diagnostics_api.dependencies import get_diagnostic_service, get_diagnostic_worker_pool
from diagnostics_api.services.diagnostic_service import ASYNC_MODE, DiagnosticService
from diagnostics_api.services.worker_pool_service import DiagnosticWorkerPool
from diagnostics_api.utils.exceptions import (
    BadRequestError,
    GatewayUnavailableError,
    LeaseHeldError,
    LogNotFoundError
)
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/diagnostics", tags=["diagnostics"])


# ============== Pydantic Models ==============

class RunDiagnosticRequest(BaseModel):
    """Manual diagnostic request"""
    target_ids: List[str] = Field(..., description="Device or subscriber ids to diagnose")
    user_checks: List[str] = Field(default_factory=list, description="Subscriber ids checked after the device steps")
    mode: str = Field(default=ASYNC_MODE, description="'sync' waits for the logs, 'async' only queues jobs")


# ============== Manual trigger ==============

@router.post("/run")
async def run_diagnostic(
        request: RunDiagnosticRequest,
        service: DiagnosticService = Depends(get_diagnostic_service)
):
    """
    Diagnose one or more targets.

    Async mode answers 202 with the queued job ids; sync mode answers 200
    with the finished diagnostic logs plus an error entry for every target
    that could not be diagnosed. When no target could be diagnosed the
    first error decides the status code (409 or 503).
    """
    try:
        result = await service.trigger(request.target_ids, user_checks=request.user_checks, mode=request.mode)

        if result['mode'] == ASYNC_MODE:
            return JSONResponse(status_code=202, content=result)
        return result

    except BadRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LeaseHeldError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GatewayUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error running diagnostic: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error running diagnostic: {str(e)}")


# ============== Logs ==============

@router.get("/logs/{log_id}", response_model=Dict[str, Any])
async def get_diagnostic_log(
        log_id: int,
        service: DiagnosticService = Depends(get_diagnostic_service)
) -> Dict[str, Any]:
    try:
        return service.get_log(log_id)

    except LogNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting diagnostic log: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting diagnostic log: {str(e)}")


@router.get("/targets/{target_id}/logs")
async def get_target_logs(
        target_id: str,
        limit: int = Query(50, ge=1, le=500),
        service: DiagnosticService = Depends(get_diagnostic_service)
) -> List[Dict[str, Any]]:
    """
    Diagnostic history of one target, newest first.
    """
    try:
        return service.list_logs_for_target(target_id, limit=limit)

    except Exception as e:
        logger.error(f"Error getting logs for {target_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting logs for {target_id}: {str(e)}")


# ============== Worker pool ==============

@router.post("/workers/start")
async def start_workers(pool: DiagnosticWorkerPool = Depends(get_diagnostic_worker_pool)) -> Dict[str, Any]:
    try:
        return await pool.start()

    except Exception as e:
        logger.error(f"Error starting workers: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error starting workers: {str(e)}")


@router.post("/workers/stop")
async def stop_workers(pool: DiagnosticWorkerPool = Depends(get_diagnostic_worker_pool)) -> Dict[str, Any]:
    try:
        return await pool.stop()

    except Exception as e:
        logger.error(f"Error stopping workers: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error stopping workers: {str(e)}")


@router.get("/workers/status")
async def get_workers_status(pool: DiagnosticWorkerPool = Depends(get_diagnostic_worker_pool)) -> Dict[str, Any]:
    """
    Worker pool state, queue depth and job counters.
    """
    try:
        return pool.get_status()

    except Exception as e:
        logger.error(f"Error getting worker status: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting worker status: {str(e)}")
