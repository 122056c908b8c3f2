"""Model for diagnostic jobs waiting in, or claimed from, the job queue."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, JSON, String

from diagnostics_api.models.diagnostics.jobs import MAX_TARGET_ID_LENGTH
from diagnostics_api.utils.database import Base
from diagnostics_api.utils.timezone import now_utc


class QueuedJob(Base):
    """
    One delivery of a diagnostic job.

    A row is deliverable once ``available_at`` has passed and it is not
    claimed (``locked_until`` empty or in the past). Claiming sets
    ``locked_until``; a consumer that dies leaves the claim to expire so the
    job is delivered again. Acking deletes the row. A retry is a new row with
    the same ``job_id`` and the next ``attempt``.
    """
    __tablename__ = 'diagnostic_jobs'

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    job_id = Column(String(64), nullable=False, index=True)
    target_id = Column(String(MAX_TARGET_ID_LENGTH), nullable=False)
    attempt = Column(Integer, nullable=False, default=0)

    # Serialized DiagnosticJob
    payload = Column(JSON, nullable=False)

    available_at = Column(DateTime, nullable=False, index=True)
    locked_by = Column(String(64), nullable=True)
    locked_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=now_utc, nullable=False)

    def __repr__(self):
        return f"<QueuedJob(job_id={self.job_id}, target={self.target_id}, attempt={self.attempt})>"
