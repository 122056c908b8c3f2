"""Neighbor analysis: fan-out liveness and billing probes over a target's neighbors."""

import asyncio
from typing import List

from diagnostics_api.interfaces.gateway_interfaces import IDeviceGateway
from diagnostics_api.models.diagnostics.enums import AccountStatus, NeighborMode, StepKind, StepStatus
from diagnostics_api.models.diagnostics.gateway import AccountInfo, GatewayNeighbor
from diagnostics_api.models.diagnostics.steps import DiagnosticStep, NeighborAnalysisDetails, NeighborRecord
from diagnostics_api.utils.logger import get_logger
from diagnostics_api.utils.timezone import format_date

logger = get_logger(__name__)

NO_NEIGHBORS_SUMMARY = "No neighbors found"

STEP_KIND_BY_MODE = {
    NeighborMode.STATION_BASED: StepKind.NEIGHBOR_STATION,
    NeighborMode.APARTMENT_BASED: StepKind.NEIGHBOR_APARTMENT,
}

_SCOPE_BY_MODE = {
    NeighborMode.STATION_BASED: "access point",
    NeighborMode.APARTMENT_BASED: "building",
}


def offline_reason(account: AccountInfo) -> str:
    """Explain why an offline neighbor is offline, based on its account."""
    if account.status == AccountStatus.EXPIRED:
        if account.expiry_date:
            return f"Account expired on {format_date(account.expiry_date)}"
        return "Account expired"
    if account.status == AccountStatus.SUSPENDED:
        return "Account suspended"
    return "Network/Hardware issue"


class NeighborAnalysisService:
    """Compares a target with the other stations or units around it."""

    def __init__(self, gateway: IDeviceGateway, fanout_limit: int = 5):
        """
        Args:
            gateway: Device/Account Gateway
            fanout_limit: Maximum neighbors probed at the same time
        """
        if fanout_limit < 1:
            raise ValueError("fanout_limit must be at least 1")
        self.gateway = gateway
        self.fanout_limit = fanout_limit

    async def analyze_neighbors(self, target_id: str, mode: NeighborMode) -> List[NeighborRecord]:
        """
        Probe every neighbor of ``target_id``.

        Records come back in the order the gateway lists the neighbors. The
        target itself and repeated ids are dropped so each neighbor appears
        exactly once.
        """
        if mode == NeighborMode.STATION_BASED:
            listed = await self.gateway.list_station_neighbors(target_id)
        else:
            listed = await self.gateway.list_apartment_neighbors(target_id)

        neighbors: List[GatewayNeighbor] = []
        seen = {target_id}
        for neighbor in listed:
            if neighbor.id in seen:
                continue
            seen.add(neighbor.id)
            neighbors.append(neighbor)

        if not neighbors:
            return []

        logger.info(f"Probing {len(neighbors)} {mode.value} neighbor(s) of {target_id} (fan-out {self.fanout_limit})")
        semaphore = asyncio.Semaphore(self.fanout_limit)
        return list(await asyncio.gather(*(self._probe(neighbor, semaphore) for neighbor in neighbors)))

    async def _probe(self, neighbor: GatewayNeighbor, semaphore: asyncio.Semaphore) -> NeighborRecord:
        account_id = neighbor.account_id or neighbor.id
        async with semaphore:
            try:
                is_online = await self.gateway.ping_target(neighbor.id)
            except Exception as e:
                logger.warning(f"Ping failed for neighbor {neighbor.id}: {str(e)}")
                return NeighborRecord(
                    neighbor_id=neighbor.id,
                    name=neighbor.name,
                    is_online=False,
                    account_status=AccountStatus.UNKNOWN,
                    reason=f"Probe failed: {e}",
                )

            try:
                account = await self.gateway.get_account_status(account_id)
            except Exception as e:
                # Live status is already known; only the billing side is missing
                logger.warning(f"Account lookup failed for neighbor {neighbor.id}: {str(e)}")
                return NeighborRecord(
                    neighbor_id=neighbor.id,
                    name=neighbor.name,
                    is_online=is_online,
                    account_status=AccountStatus.UNKNOWN,
                    reason="" if is_online else f"Account lookup failed: {e}",
                )

        if account is None:
            account = AccountInfo(account_id=account_id, name=neighbor.name, status=AccountStatus.UNKNOWN)

        return NeighborRecord(
            neighbor_id=neighbor.id,
            name=neighbor.name,
            is_online=is_online,
            account_status=account.status,
            reason="" if is_online else offline_reason(account),
        )

    async def run_step(self, target_id: str, mode: NeighborMode) -> DiagnosticStep:
        """Run the analysis and wrap it as a pipeline step."""
        kind = STEP_KIND_BY_MODE[mode]
        records = await self.analyze_neighbors(target_id, mode)

        if not records:
            summary = NO_NEIGHBORS_SUMMARY
        else:
            online = sum(1 for r in records if r.is_online)
            summary = (
                f"Analyzed {len(records)} other client(s) on the same {_SCOPE_BY_MODE[mode]}: "
                f"{online} online, {len(records) - online} offline."
            )

        return DiagnosticStep(
            kind=kind,
            status=StepStatus.SUCCESS,
            summary=summary,
            details=NeighborAnalysisDetails(mode=mode, neighbors=records),
        )
