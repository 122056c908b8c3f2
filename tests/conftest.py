import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WEBHOOK_API_KEY", "test-secret")
os.environ.setdefault("WORKERS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from diagnostics_api.interfaces.gateway_interfaces import IDeviceGateway, IJobQueue
from diagnostics_api.models.diagnostics.diagnostic_log import DiagnosticLog, TargetLease  # noqa: F401
from diagnostics_api.models.diagnostics.queued_job import QueuedJob  # noqa: F401
from diagnostics_api.models.diagnostics.enums import AccountStatus, DeviceRole
from diagnostics_api.models.diagnostics.gateway import AccountInfo, GatewayDevice, GatewayNeighbor
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.repositories.diagnostic_repositories import (
    DiagnosticJobRepository,
    DiagnosticLogRepository,
    TargetLeaseRepository
)
from diagnostics_api.services.diagnostic_worker import DiagnosticWorker
from diagnostics_api.services.job_queue import DatabaseJobQueue
from diagnostics_api.services.neighbor_analysis_service import NeighborAnalysisService
from diagnostics_api.services.step_pipeline import StepPipeline
from diagnostics_api.utils.database import Base
from diagnostics_api.utils.exceptions import GatewayUnavailableError


class FakeGateway(IDeviceGateway):
    """Scripted gateway: topology, accounts and liveness are plain dicts and sets."""

    def __init__(self):
        self.devices: Dict[str, GatewayDevice] = {}
        self.accounts: Dict[str, AccountInfo] = {}
        self.online: Set[str] = set()
        self.station_neighbors: Dict[str, List[GatewayNeighbor]] = {}
        self.apartment_neighbors: Dict[str, List[GatewayNeighbor]] = {}
        self.ping_errors: Dict[str, Exception] = {}
        self.ping_delays: Dict[str, float] = {}
        self.default_ping_delay = 0.0
        self.unavailable = False

        self.ping_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def _check_available(self):
        if self.unavailable:
            raise GatewayUnavailableError("Gateway unreachable: connection refused")

    async def get_device_by_id(self, device_id: str) -> Optional[GatewayDevice]:
        self._check_available()
        return self.devices.get(device_id)

    async def get_account_status(self, account_id: str) -> Optional[AccountInfo]:
        self._check_available()
        return self.accounts.get(account_id)

    async def ping_target(self, target_id: str) -> bool:
        self._check_available()
        self.ping_calls.append(target_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.ping_delays.get(target_id, self.default_ping_delay)
            if delay:
                await asyncio.sleep(delay)
            if target_id in self.ping_errors:
                raise self.ping_errors[target_id]
            return target_id in self.online
        finally:
            self.in_flight -= 1

    async def list_station_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        self._check_available()
        return list(self.station_neighbors.get(device_id, []))

    async def list_apartment_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        self._check_available()
        return list(self.apartment_neighbors.get(device_id, []))

    # Topology builders

    def add_account(self, account_id: str, name: str = None, status: AccountStatus = AccountStatus.ACTIVE,
                    expiry_date: datetime = None, online: bool = False) -> AccountInfo:
        account = AccountInfo(account_id=account_id, name=name or f"Client {account_id}", status=status,
                              expiry_date=expiry_date)
        self.accounts[account_id] = account
        if online:
            self.online.add(account_id)
        return account

    def add_station(self, device_id: str = "st1", router_id: Optional[str] = "r1", ap_id: Optional[str] = "ap1",
                    owner_id: Optional[str] = "acc1", online: bool = True) -> GatewayDevice:
        device = GatewayDevice(id=device_id, name=f"Station {device_id}", role=DeviceRole.STATION,
                               router_id=router_id, router_name="Core Router" if router_id else None,
                               access_point_id=ap_id, access_point_name="AP North" if ap_id else None,
                               owner_id=owner_id)
        self.devices[device_id] = device
        if online:
            self.online.add(device_id)
        return device

    def add_access_point(self, device_id: str = "ap1", router_id: Optional[str] = "r1",
                         owner_id: Optional[str] = None, online: bool = True) -> GatewayDevice:
        device = GatewayDevice(id=device_id, name=f"AP {device_id}", role=DeviceRole.ACCESS_POINT,
                               router_id=router_id, router_name="Core Router" if router_id else None,
                               building_id="b1", owner_id=owner_id)
        self.devices[device_id] = device
        if online:
            self.online.add(device_id)
        return device


class RecordingQueue(IJobQueue):
    """Queue that only records what was enqueued."""

    def __init__(self):
        self.enqueued: List[Tuple[DiagnosticJob, float]] = []

    async def enqueue(self, job: DiagnosticJob, delay_seconds: float = 0.0) -> None:
        self.enqueued.append((job, delay_seconds))

    async def consume(self) -> DiagnosticJob:
        raise NotImplementedError

    async def ack(self, job: DiagnosticJob) -> None:
        pass

    async def requeue_unacked(self) -> int:
        return 0

    def pending_count(self) -> int:
        return len(self.enqueued)

    @property
    def jobs(self) -> List[DiagnosticJob]:
        return [job for job, _ in self.enqueued]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def log_repository(session_factory):
    return DiagnosticLogRepository(session_factory=session_factory)


@pytest.fixture
def lease_repository(session_factory):
    return TargetLeaseRepository(session_factory=session_factory)


@pytest.fixture
def job_repository(session_factory):
    return DiagnosticJobRepository(session_factory=session_factory)


@pytest.fixture
def job_queue(job_repository):
    return DatabaseJobQueue(job_repository, visibility_timeout_seconds=60, poll_interval_seconds=0.01)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def pipeline(gateway):
    return StepPipeline(
        gateway=gateway,
        neighbor_service=NeighborAnalysisService(gateway, fanout_limit=3),
        ping_attempts=3,
        ping_retry_delay=0,
    )


@pytest.fixture
def worker(gateway, recording_queue, log_repository, lease_repository, pipeline):
    return DiagnosticWorker(
        gateway=gateway,
        queue=recording_queue,
        log_repository=log_repository,
        lease_repository=lease_repository,
        pipeline=pipeline,
        lease_ttl_seconds=60,
        deadline_seconds=5.0,
        max_retries=3,
        retry_base_delay=2.0,
    )
