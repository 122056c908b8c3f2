from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from diagnostics_api.models.diagnostics.enums import AccountStatus, DeviceRole


@dataclass
class GatewayDevice:
    id: str
    name: str
    role: DeviceRole
    ip_address: Optional[str] = None
    router_id: Optional[str] = None
    router_name: Optional[str] = None
    access_point_id: Optional[str] = None
    access_point_name: Optional[str] = None
    building_id: Optional[str] = None
    owner_id: Optional[str] = None


@dataclass
class AccountInfo:
    account_id: str
    name: str
    status: AccountStatus
    expiry_date: Optional[datetime] = None


@dataclass
class GatewayNeighbor:
    id: str
    name: str
    account_id: Optional[str] = None
