"""Interfaces for diagnostic log, lease and job queue repositories."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from diagnostics_api.models.diagnostics.diagnostic_log import DiagnosticLog
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob


class IDiagnosticLogRepository(ABC):
    """Interface for the append-only DiagnosticLog store."""

    @abstractmethod
    def create_log(self, log_data: dict) -> DiagnosticLog:
        """Persist a finished diagnostic run."""
        pass  # pragma: no cover

    @abstractmethod
    def get_log_by_id(self, log_id: int) -> Optional[DiagnosticLog]:
        """Get log by ID."""
        pass  # pragma: no cover

    @abstractmethod
    def get_logs_by_target(self, target_id: str, limit: int = 50) -> List[DiagnosticLog]:
        """Get logs for a target, newest first."""
        pass  # pragma: no cover


class ITargetLeaseRepository(ABC):
    """Interface for per-target leases."""

    @abstractmethod
    def acquire(self, target_id: str, ttl_seconds: float) -> Optional[str]:
        """Atomically take the lease if free or expired. Returns the owner token, or None if held."""
        pass  # pragma: no cover

    @abstractmethod
    def release(self, target_id: str, owner_token: str) -> bool:
        """Release a lease owned by ``owner_token``."""
        pass  # pragma: no cover

    @abstractmethod
    def is_held(self, target_id: str) -> bool:
        """Whether an unexpired lease exists for the target."""
        pass  # pragma: no cover


class IDiagnosticJobRepository(ABC):
    """Interface for the persisted job queue table."""

    @abstractmethod
    def add_job(self, job: DiagnosticJob, available_at: datetime) -> None:
        """Store a job, deliverable from ``available_at``."""
        pass  # pragma: no cover

    @abstractmethod
    def claim_next(self, consumer_id: str, visibility_timeout_seconds: float) -> Optional[DiagnosticJob]:
        """Atomically claim the oldest deliverable job, or None if there is none."""
        pass  # pragma: no cover

    @abstractmethod
    def complete(self, job_id: str, attempt: int) -> bool:
        """Delete a delivered job."""
        pass  # pragma: no cover

    @abstractmethod
    def release_claimed(self, consumer_id: str) -> int:
        """Make every job claimed by ``consumer_id`` deliverable again."""
        pass  # pragma: no cover

    @abstractmethod
    def count_pending(self) -> int:
        pass  # pragma: no cover

    @abstractmethod
    def count_in_flight(self) -> int:
        pass  # pragma: no cover
