"""Repositories for diagnostic logs, target leases and queued jobs."""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, desc, or_, update
from sqlalchemy.exc import IntegrityError

from diagnostics_api.interfaces.diagnostic_interfaces import (
    IDiagnosticJobRepository,
    IDiagnosticLogRepository,
    ITargetLeaseRepository
)
from diagnostics_api.models.diagnostics.diagnostic_log import DiagnosticLog, TargetLease
from diagnostics_api.models.diagnostics.jobs import DiagnosticJob
from diagnostics_api.models.diagnostics.queued_job import QueuedJob
from diagnostics_api.schema.diagnostic_schemas import diagnostic_log_schema
from diagnostics_api.utils.database import SessionLocal
from diagnostics_api.utils.logger import get_logger
from diagnostics_api.utils.timezone import now_utc

logger = get_logger(__name__)


class DiagnosticLogRepository(IDiagnosticLogRepository):
    """Append-only diagnostic log repository."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def create_log(self, log_data: dict) -> DiagnosticLog:
        """
        Persist a finished diagnostic run.

        ``created_at`` is kept strictly increasing per target so that the
        history of a target has a total order even for back-to-back runs.
        """
        db = self.session_factory()
        try:
            validated_data = diagnostic_log_schema.load(log_data)
            log = DiagnosticLog(**validated_data)
            created_at = now_utc()

            latest = db.query(DiagnosticLog.created_at).filter(
                DiagnosticLog.target_id == log.target_id
            ).order_by(desc(DiagnosticLog.created_at)).first()
            if latest and latest[0] >= created_at:
                created_at = latest[0] + timedelta(microseconds=1)
            log.created_at = created_at

            db.add(log)
            db.commit()
            db.refresh(log)
            logger.info(f"Created diagnostic log {log.id} for target {log.target_id} ({len(log.steps)} steps)")
            return log
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating diagnostic log: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def get_log_by_id(self, log_id: int) -> Optional[DiagnosticLog]:
        """Get log by ID."""
        db = self.session_factory()
        try:
            return db.query(DiagnosticLog).filter_by(id=log_id).first()
        finally:
            db.close()

    def get_logs_by_target(self, target_id: str, limit: int = 50) -> List[DiagnosticLog]:
        """Get logs for a target, newest first."""
        db = self.session_factory()
        try:
            return db.query(DiagnosticLog).filter_by(target_id=target_id).order_by(
                desc(DiagnosticLog.created_at), desc(DiagnosticLog.id)
            ).limit(limit).all()
        finally:
            db.close()

    def count_logs_by_target(self, target_id: str) -> int:
        db = self.session_factory()
        try:
            return db.query(DiagnosticLog).filter_by(target_id=target_id).count()
        finally:
            db.close()


class TargetLeaseRepository(ITargetLeaseRepository):
    """
    SQL-backed target leases.

    Each acquisition path is one atomic statement: a conditional UPDATE takes
    over an expired row, otherwise an INSERT claims a free target and a
    primary-key conflict means another worker holds it.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def acquire(self, target_id: str, ttl_seconds: float) -> Optional[str]:
        """Take the lease for ``target_id``. Returns the owner token or None if held."""
        token = uuid.uuid4().hex
        now = now_utc()
        expires_at = now + timedelta(seconds=ttl_seconds)

        db = self.session_factory()
        try:
            result = db.execute(
                update(TargetLease)
                .where(TargetLease.target_id == target_id, TargetLease.expires_at <= now)
                .values(owner_token=token, acquired_at=now, expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                db.commit()
                logger.info(f"Took over expired lease for target {target_id}")
                return token

            db.add(TargetLease(target_id=target_id, owner_token=token, acquired_at=now, expires_at=expires_at))
            db.commit()
            logger.info(f"Acquired lease for target {target_id} (ttl {ttl_seconds}s)")
            return token
        except IntegrityError:
            db.rollback()
            logger.warning(f"Lease for target {target_id} is already held")
            return None
        except Exception as e:
            db.rollback()
            logger.error(f"Error acquiring lease for {target_id}: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def release(self, target_id: str, owner_token: str) -> bool:
        """Release the lease if it is still owned by ``owner_token``."""
        db = self.session_factory()
        try:
            result = db.execute(
                delete(TargetLease)
                .where(TargetLease.target_id == target_id, TargetLease.owner_token == owner_token)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            released = result.rowcount == 1
            if released:
                logger.info(f"Released lease for target {target_id}")
            else:
                logger.warning(f"Lease for target {target_id} was no longer owned at release time")
            return released
        except Exception as e:
            db.rollback()
            logger.error(f"Error releasing lease for {target_id}: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def is_held(self, target_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.query(TargetLease).filter(
                TargetLease.target_id == target_id,
                TargetLease.expires_at > now_utc()
            ).first() is not None
        finally:
            db.close()


class DiagnosticJobRepository(IDiagnosticJobRepository):
    """
    Job queue rows in ``diagnostic_jobs``.

    A claim is a conditional UPDATE on an unclaimed row, the same
    single-statement pattern as the lease takeover, so two consumers polling
    at once never both get the same row.
    """

    CLAIM_BATCH = 10

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def add_job(self, job: DiagnosticJob, available_at: datetime) -> None:
        db = self.session_factory()
        try:
            db.add(QueuedJob(
                job_id=job.job_id,
                target_id=job.target_id,
                attempt=job.attempt,
                payload=job.model_dump(mode="json"),
                available_at=available_at,
                created_at=now_utc(),
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error queueing job {job.job_id}: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def claim_next(self, consumer_id: str, visibility_timeout_seconds: float) -> Optional[DiagnosticJob]:
        """
        Claim the oldest deliverable job for ``consumer_id``.

        The claim lasts ``visibility_timeout_seconds``; if the job is not
        acked by then it becomes deliverable again.
        """
        now = now_utc()
        unclaimed = or_(QueuedJob.locked_until.is_(None), QueuedJob.locked_until <= now)

        db = self.session_factory()
        try:
            candidates = db.query(QueuedJob.id, QueuedJob.payload).filter(
                QueuedJob.available_at <= now, unclaimed
            ).order_by(QueuedJob.available_at, QueuedJob.id).limit(self.CLAIM_BATCH).all()

            for row_id, payload in candidates:
                result = db.execute(
                    update(QueuedJob)
                    .where(QueuedJob.id == row_id, unclaimed)
                    .values(locked_by=consumer_id, locked_until=now + timedelta(seconds=visibility_timeout_seconds))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    db.commit()
                    return DiagnosticJob.model_validate(payload)
            return None
        except Exception as e:
            db.rollback()
            logger.error(f"Error claiming job: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def complete(self, job_id: str, attempt: int) -> bool:
        """Delete the delivered row. A retry queued under the same job id is a later attempt and is kept."""
        db = self.session_factory()
        try:
            result = db.execute(
                delete(QueuedJob)
                .where(QueuedJob.job_id == job_id, QueuedJob.attempt == attempt)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount > 0
        except Exception as e:
            db.rollback()
            logger.error(f"Error completing job {job_id}: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def release_claimed(self, consumer_id: str) -> int:
        db = self.session_factory()
        try:
            result = db.execute(
                update(QueuedJob)
                .where(QueuedJob.locked_by == consumer_id)
                .values(locked_by=None, locked_until=None)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount
        except Exception as e:
            db.rollback()
            logger.error(f"Error releasing jobs of consumer {consumer_id}: {str(e)}")
            raise RuntimeError(f"Database error: {str(e)}") from e
        finally:
            db.close()

    def count_pending(self) -> int:
        """Jobs not currently claimed, delayed ones included."""
        db = self.session_factory()
        try:
            now = now_utc()
            return db.query(QueuedJob).filter(
                or_(QueuedJob.locked_until.is_(None), QueuedJob.locked_until <= now)
            ).count()
        finally:
            db.close()

    def count_in_flight(self) -> int:
        db = self.session_factory()
        try:
            return db.query(QueuedJob).filter(QueuedJob.locked_until > now_utc()).count()
        finally:
            db.close()
