"""
Routes for inbound network events.

Router netwatch scripts call the webhook with a plain GET and query
parameters; other senders POST a JSON body. Both behave the same.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from diagnostics_api.dependencies import get_ingestion_service
from diagnostics_api.services.ingestion_service import IngestionService
from diagnostics_api.utils.exceptions import BadRequestError, UnauthorizedError
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class NetworkEventRequest(BaseModel):
    """Device status change reported by the network"""
    deviceId: Optional[str] = Field(None, description="Device that changed state")
    status: Optional[str] = Field(None, description="New status, e.g. 'down' or 'up'")
    apiKey: Optional[str] = Field(None, description="Shared webhook secret")


async def _handle_event(service: IngestionService, device_id: Optional[str], status: Optional[str],
                        api_key: Optional[str]) -> Dict[str, Any]:
    try:
        return await service.handle_event(device_id=device_id, status=status, api_key=api_key)

    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except BadRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing network event: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error processing network event: {str(e)}")


@router.get("/network-event")
async def network_event_get(
        deviceId: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        apiKey: Optional[str] = Query(None),
        service: IngestionService = Depends(get_ingestion_service)
) -> Dict[str, Any]:
    """
    Network event sent as query parameters.
    """
    return await _handle_event(service, deviceId, status, apiKey)


@router.post("/network-event")
async def network_event_post(
        request: Optional[NetworkEventRequest] = None,
        service: IngestionService = Depends(get_ingestion_service)
) -> Dict[str, Any]:
    """
    Network event sent as a JSON body.
    """
    request = request or NetworkEventRequest()
    return await _handle_event(service, request.deviceId, request.status, request.apiKey)
