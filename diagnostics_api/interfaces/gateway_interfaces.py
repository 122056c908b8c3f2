"""Capability interfaces consumed by the diagnostic engine."""

from abc import ABC, abstractmethod
from typing import List, Optional

from diagnostics_api.models.diagnostics.gateway import AccountInfo, GatewayDevice, GatewayNeighbor
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob


class IDeviceGateway(ABC):
    """
    Device/Account Gateway.

    Lookups return None when the entity does not exist. Implementations raise
    GatewayUnavailableError when the gateway itself cannot be reached.
    """

    @abstractmethod
    async def get_device_by_id(self, device_id: str) -> Optional[GatewayDevice]:
        pass  # pragma: no cover

    @abstractmethod
    async def get_account_status(self, account_id: str) -> Optional[AccountInfo]:
        pass  # pragma: no cover

    @abstractmethod
    async def ping_target(self, target_id: str) -> bool:
        """True when the device or subscriber answers."""
        pass  # pragma: no cover

    @abstractmethod
    async def list_station_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        """Stations sharing the access point of ``device_id``, in gateway order."""
        pass  # pragma: no cover

    @abstractmethod
    async def list_apartment_neighbors(self, device_id: str) -> List[GatewayNeighbor]:
        """Units in the same building as ``device_id``, in gateway order."""
        pass  # pragma: no cover


class IJobQueue(ABC):
    """At-least-once queue of diagnostic jobs."""

    @abstractmethod
    async def enqueue(self, job: DiagnosticJob, delay_seconds: float = 0.0) -> None:
        pass  # pragma: no cover

    @abstractmethod
    async def consume(self) -> DiagnosticJob:
        """Wait for and return the next job."""
        pass  # pragma: no cover

    @abstractmethod
    async def ack(self, job: DiagnosticJob) -> None:
        """Mark a delivered job as handled."""
        pass  # pragma: no cover

    @abstractmethod
    def pending_count(self) -> int:
        pass  # pragma: no cover

    @abstractmethod
    async def requeue_unacked(self) -> int:
        """Hand every delivered but unacked job back to the queue."""
        pass  # pragma: no cover
