"""Device/Account Gateway HTTP client."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from diagnostics_api.interfaces.gateway_interfaces import IDeviceGateway
from diagnostics_api.models.diagnostics.enums import AccountStatus, DeviceRole
from diagnostics_api.models.diagnostics.gateway import AccountInfo, GatewayDevice, GatewayNeighbor
from diagnostics_api.utils.exceptions import GatewayUnavailableError
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

_ROLE_MAP = {
    "station": DeviceRole.STATION,
    "access": DeviceRole.ACCESS_POINT,
    "accesspoint": DeviceRole.ACCESS_POINT,
    "access_point": DeviceRole.ACCESS_POINT,
    "ap": DeviceRole.ACCESS_POINT,
    "router": DeviceRole.ROUTER,
}

_ACCOUNT_STATUS_MAP = {
    "active": AccountStatus.ACTIVE,
    "expired": AccountStatus.EXPIRED,
    "suspended": AccountStatus.SUSPENDED,
}


class HttpDeviceGateway(IDeviceGateway):
    """Gateway client over the inventory/billing REST API."""

    def __init__(self, base_url: str, token: str, timeout_seconds: float = 10.0) -> None:
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                'X-Auth-Token': token,
                'Content-Type': 'application/json',
                'Accept': 'application/json'
            },
            timeout=httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 5.0))
        )

    async def close(self) -> None:
        await self.session.aclose()

    async def _request(self, method: str, endpoint: str, allow_not_found: bool = False, **kwargs) -> Optional[Any]:
        url = endpoint.lstrip('/')
        try:
            logger.debug(f"Gateway request: {method} {url}")
            response = await self.session.request(method, url, **kwargs)
            if allow_not_found and response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gateway error: {e.response.status_code} - {e.response.text}")
            if e.response.status_code >= 500:
                raise GatewayUnavailableError(f"Gateway returned {e.response.status_code} for {url}") from e
            raise
        except httpx.RequestError as e:
            logger.error(f"Gateway unreachable at {self.base_url}: {str(e)}")
            raise GatewayUnavailableError(f"Gateway unreachable: {str(e)}") from e

    async def get_device_by_id(self, device_id: str) -> Optional[GatewayDevice]:
        data = await self._request('GET', f'/devices/{device_id}', allow_not_found=True)
        return self._parse_device(data) if data else None

    async def get_account_status(self, account_id: str) -> Optional[AccountInfo]:
        data = await self._request('GET', f'/accounts/{account_id}', allow_not_found=True)
        return self._parse_account(data) if data else None

    async def ping_target(self, target_id: str) -> bool:
        data = await self._request('POST', f'/targets/{target_id}/ping')
        return bool((data or {}).get("reachable", False))

    async def list_station_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        data = await self._request('GET', f'/devices/{device_id}/neighbors', params={'mode': 'station'})
        return [self._parse_neighbor(item) for item in data or []]

    async def list_apartment_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        data = await self._request('GET', f'/devices/{device_id}/neighbors', params={'mode': 'apartment'})
        return [self._parse_neighbor(item) for item in data or []]

    @staticmethod
    def _parse_device(data: Dict[str, Any]) -> GatewayDevice:
        role = str(data.get("role") or data.get("deviceType") or "").replace(" ", "").lower()
        return GatewayDevice(
            id=str(data.get("id")),
            name=data.get("name") or data.get("deviceName") or "Unknown",
            role=_ROLE_MAP.get(role, DeviceRole.OTHER),
            ip_address=data.get("ipAddress"),
            router_id=data.get("routerId"),
            router_name=data.get("routerName"),
            access_point_id=data.get("accessPointId"),
            access_point_name=data.get("accessPointName"),
            building_id=data.get("buildingId"),
            owner_id=data.get("ownerId"),
        )

    @staticmethod
    def _parse_account(data: Dict[str, Any]) -> AccountInfo:
        expiry = data.get("expiryDate")
        return AccountInfo(
            account_id=str(data.get("id")),
            name=data.get("name") or data.get("officialName") or "Unknown",
            status=_ACCOUNT_STATUS_MAP.get(str(data.get("status", "")).lower(), AccountStatus.UNKNOWN),
            expiry_date=datetime.fromisoformat(expiry.replace("Z", "+00:00")) if expiry else None,
        )

    @staticmethod
    def _parse_neighbor(data: Dict[str, Any]) -> GatewayNeighbor:
        return GatewayNeighbor(
            id=str(data.get("id")),
            name=data.get("name") or data.get("officialName") or "Unknown",
            account_id=data.get("accountId"),
        )
