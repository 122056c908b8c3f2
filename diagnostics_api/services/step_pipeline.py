"""
Diagnostic step pipeline.

The plan for a run is an ordered list of ``StepDefinition``. Each definition
names the steps that must have succeeded before it may run (``requires``);
when a prerequisite did not succeed the step is recorded as Skipped instead
of being attempted. Steps run one after another and are appended to the
shared step list as soon as they complete, so a caller that abandons the run
(deadline) still holds every finished step.
"""

import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, List, Optional, Tuple

from diagnostics_api.interfaces.gateway_interfaces import IDeviceGateway
from diagnostics_api.models.diagnostics.enums import (
    AccountStatus, DeviceRole, NeighborMode, StepKind, StepStatus, TargetType
)
from diagnostics_api.models.diagnostics.gateway import GatewayDevice
from diagnostics_api.models.diagnostics.steps import (
    BillingDetails, DiagnosticStep, EmptyDetails, PingDetails, RouterDetails, UserStatusDetails
)
from diagnostics_api.services.neighbor_analysis_service import NeighborAnalysisService
from diagnostics_api.utils.logger import get_logger
from diagnostics_api.utils.timezone import format_date

logger = get_logger(__name__)

PROBE_INITIAL_DEVICE = "Ping Initial Device"
PROBE_STATION = "Ping Station"
PROBE_ACCESS_POINT = "Ping Access Point"


@dataclass
class PipelineContext:
    target_id: str
    target_type: Optional[TargetType]
    device: Optional[GatewayDevice] = None
    user_checks: List[str] = field(default_factory=list)

    @property
    def role(self) -> Optional[DeviceRole]:
        return self.device.role if self.device else None


@dataclass(frozen=True)
class StepDefinition:
    kind: StepKind
    run: Callable[[PipelineContext], Awaitable[DiagnosticStep]]
    requires: Tuple[StepKind, ...] = ()
    applies: Callable[[PipelineContext], bool] = lambda ctx: True


def _status_of(kind: StepKind, steps: List[DiagnosticStep]) -> Optional[StepStatus]:
    for step in steps:
        if step.kind == kind:
            return step.status
    return None


class StepPipeline:
    """Builds and executes the ordered step plan for one target."""

    def __init__(self, gateway: IDeviceGateway, neighbor_service: NeighborAnalysisService,
                 ping_attempts: int = 3, ping_retry_delay: float = 2.0):
        self.gateway = gateway
        self.neighbor_service = neighbor_service
        self.ping_attempts = max(1, ping_attempts)
        self.ping_retry_delay = ping_retry_delay

    def device_steps(self) -> List[StepDefinition]:
        needs_router = (StepKind.ROUTER,)
        return [
            StepDefinition(StepKind.BILLING, self._billing_check),
            StepDefinition(StepKind.ROUTER, self._router_check),
            StepDefinition(StepKind.CPE, self._cpe_check, requires=needs_router,
                           applies=lambda ctx: ctx.role != DeviceRole.ACCESS_POINT),
            StepDefinition(StepKind.AP, self._ap_check, requires=needs_router,
                           applies=lambda ctx: ctx.role in (DeviceRole.STATION, DeviceRole.ACCESS_POINT)),
            StepDefinition(StepKind.NEIGHBOR_STATION,
                           partial(self._neighbor_analysis, mode=NeighborMode.STATION_BASED),
                           requires=needs_router,
                           applies=lambda ctx: ctx.role == DeviceRole.STATION),
            StepDefinition(StepKind.NEIGHBOR_APARTMENT,
                           partial(self._neighbor_analysis, mode=NeighborMode.APARTMENT_BASED),
                           requires=needs_router,
                           applies=lambda ctx: ctx.role == DeviceRole.ACCESS_POINT),
        ]

    def plan(self, ctx: PipelineContext) -> List[StepDefinition]:
        """Ordered list of the steps that apply to this target."""
        if ctx.target_type == TargetType.USER:
            return [StepDefinition(StepKind.USER_STATUS, partial(self._user_status, user_id=ctx.target_id))]

        definitions = [d for d in self.device_steps() if d.applies(ctx)]
        for user_id in ctx.user_checks:
            definitions.append(StepDefinition(
                StepKind.USER_STATUS, partial(self._user_status, user_id=user_id), requires=(StepKind.ROUTER,)
            ))
        return definitions

    async def run(self, ctx: PipelineContext, steps: List[DiagnosticStep]) -> List[DiagnosticStep]:
        """Execute the plan, appending each completed step to ``steps``."""
        for definition in self.plan(ctx):
            step = await self._execute(definition, ctx, steps)
            steps.append(step)
            logger.info(f"[{ctx.target_id}] {step.step_name}: {step.status.value} - {step.summary}")
        return steps

    async def _execute(self, definition: StepDefinition, ctx: PipelineContext,
                       completed: List[DiagnosticStep]) -> DiagnosticStep:
        unmet = [kind for kind in definition.requires if _status_of(kind, completed) != StepStatus.SUCCESS]
        if unmet:
            return DiagnosticStep.skipped(definition.kind, unmet)

        try:
            return await definition.run(ctx)
        except Exception as e:
            logger.error(f"[{ctx.target_id}] {definition.kind.value} raised {type(e).__name__}: {str(e)}")
            return DiagnosticStep.from_error(definition.kind, e)

    # ------------------------------------------------------------------ steps

    async def _billing_check(self, ctx: PipelineContext) -> DiagnosticStep:
        owner_id = ctx.device.owner_id
        if not owner_id:
            return DiagnosticStep(kind=StepKind.BILLING, status=StepStatus.SKIPPED,
                                  summary="No billing account is linked to this device.",
                                  details=EmptyDetails())

        account = await self.gateway.get_account_status(owner_id)
        if account is None:
            return DiagnosticStep(kind=StepKind.BILLING, status=StepStatus.WARNING,
                                  summary=f"Billing record {owner_id} was not found.",
                                  details=BillingDetails(account_id=owner_id))

        details = BillingDetails(account_id=account.account_id, account_status=account.status,
                                 expiry_date=account.expiry_date)
        if account.status == AccountStatus.ACTIVE:
            status, summary = StepStatus.SUCCESS, "Client account is active."
        elif account.status == AccountStatus.EXPIRED:
            when = f" on {format_date(account.expiry_date)}" if account.expiry_date else ""
            status, summary = StepStatus.FAILURE, f"Client account expired{when}."
        elif account.status == AccountStatus.SUSPENDED:
            status, summary = StepStatus.FAILURE, "Client account is suspended."
        else:
            status, summary = StepStatus.WARNING, "Client account status could not be determined."
        return DiagnosticStep(kind=StepKind.BILLING, status=status, summary=summary, details=details)

    async def _router_check(self, ctx: PipelineContext) -> DiagnosticStep:
        device = ctx.device
        if not device.router_id:
            return DiagnosticStep(kind=StepKind.ROUTER, status=StepStatus.FAILURE,
                                  summary="No Mikrotik router is associated with this device.",
                                  details=RouterDetails())

        reachable = await self.gateway.ping_target(device.router_id)
        name = device.router_name or device.router_id
        return DiagnosticStep(
            kind=StepKind.ROUTER,
            status=StepStatus.SUCCESS if reachable else StepStatus.FAILURE,
            summary=f'Router "{name}" is {"online" if reachable else "offline"}.',
            details=RouterDetails(router_id=device.router_id, router_name=device.router_name, reachable=reachable),
        )

    async def _cpe_check(self, ctx: PipelineContext) -> DiagnosticStep:
        device = ctx.device
        probe = PROBE_STATION if device.role == DeviceRole.STATION else PROBE_INITIAL_DEVICE
        reachable = await self.gateway.ping_target(device.id)
        return DiagnosticStep(
            kind=StepKind.CPE,
            status=StepStatus.SUCCESS if reachable else StepStatus.FAILURE,
            summary=f'{probe}: "{device.name}" is {"reachable" if reachable else "unreachable"}.',
            details=PingDetails(probe=probe, device_id=device.id, device_name=device.name,
                                reachable=reachable),
        )

    async def _ap_check(self, ctx: PipelineContext) -> DiagnosticStep:
        device = ctx.device
        if device.role == DeviceRole.ACCESS_POINT:
            reachable = await self.gateway.ping_target(device.id)
            return DiagnosticStep(
                kind=StepKind.AP,
                status=StepStatus.SUCCESS if reachable else StepStatus.FAILURE,
                summary=f'{PROBE_INITIAL_DEVICE}: access point "{device.name}" is '
                        f'{"reachable" if reachable else "unreachable"}.',
                details=PingDetails(probe=PROBE_INITIAL_DEVICE, device_id=device.id, device_name=device.name,
                                    reachable=reachable),
            )

        if not device.access_point_id:
            return DiagnosticStep(kind=StepKind.AP, status=StepStatus.WARNING,
                                  summary="No access point is linked to this station.",
                                  details=EmptyDetails())

        reachable, attempts = await self._ping_with_retries(device.access_point_id)
        name = device.access_point_name or device.access_point_id
        if reachable:
            summary = f'{PROBE_ACCESS_POINT}: "{name}" is reachable.'
        else:
            summary = f'{PROBE_ACCESS_POINT}: "{name}" is unreachable after {attempts} attempt(s).'
        return DiagnosticStep(
            kind=StepKind.AP,
            status=StepStatus.SUCCESS if reachable else StepStatus.FAILURE,
            summary=summary,
            details=PingDetails(probe=PROBE_ACCESS_POINT, device_id=device.access_point_id,
                                device_name=device.access_point_name, reachable=reachable, attempts=attempts),
        )

    async def _ping_with_retries(self, target_id: str) -> Tuple[bool, int]:
        for attempt in range(1, self.ping_attempts + 1):
            if await self.gateway.ping_target(target_id):
                return True, attempt
            if attempt < self.ping_attempts:
                await asyncio.sleep(self.ping_retry_delay)
        return False, self.ping_attempts

    async def _neighbor_analysis(self, ctx: PipelineContext, mode: NeighborMode) -> DiagnosticStep:
        return await self.neighbor_service.run_step(ctx.device.id, mode)

    async def _user_status(self, ctx: PipelineContext, user_id: str) -> DiagnosticStep:
        account = await self.gateway.get_account_status(user_id)
        if account is None:
            return DiagnosticStep(kind=StepKind.USER_STATUS, status=StepStatus.FAILURE,
                                  summary=f"Subscriber {user_id} was not found.",
                                  details=UserStatusDetails(user_id=user_id))

        is_online = await self.gateway.ping_target(user_id)
        details = UserStatusDetails(user_id=user_id, user_name=account.name, is_online=is_online,
                                    account_status=account.status)

        if is_online and account.status == AccountStatus.ACTIVE:
            status, summary = StepStatus.SUCCESS, f'Client "{account.name}" is online and active.'
        elif is_online:
            status = StepStatus.WARNING
            summary = f'Client "{account.name}" is online but the account is {account.status.value.lower()}.'
        elif account.status == AccountStatus.EXPIRED:
            when = f" on {format_date(account.expiry_date)}" if account.expiry_date else ""
            status, summary = StepStatus.FAILURE, f'Client "{account.name}" is offline; account expired{when}.'
        elif account.status == AccountStatus.SUSPENDED:
            status, summary = StepStatus.FAILURE, f'Client "{account.name}" is offline; account is suspended.'
        else:
            status, summary = StepStatus.FAILURE, f'Client "{account.name}" is offline.'
        return DiagnosticStep(kind=StepKind.USER_STATUS, status=status, summary=summary, details=details)
