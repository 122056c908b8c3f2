"""Models for persisted diagnostic runs and target leases."""

from typing import List

from pydantic import TypeAdapter
from sqlalchemy import BigInteger, Column, DateTime, Enum, Integer, JSON, String, Text

from diagnostics_api.models.diagnostics.enums import TargetType
from diagnostics_api.models.diagnostics.jobs import MAX_TARGET_ID_LENGTH
from diagnostics_api.models.diagnostics.steps import DiagnosticStep
from diagnostics_api.utils.database import Base
from diagnostics_api.utils.timezone import now_utc

_steps_adapter = TypeAdapter(List[DiagnosticStep])


class DiagnosticLog(Base):
    """
    Outcome of one diagnostic run.
    Written once when the pipeline finishes and never updated afterwards.
    """
    __tablename__ = 'diagnostic_logs'

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    target_id = Column(String(MAX_TARGET_ID_LENGTH), nullable=False, index=True)
    target_type = Column(Enum(TargetType), nullable=True)

    # Ordered list of serialized DiagnosticStep
    steps = Column(JSON, nullable=False, default=list)
    final_conclusion = Column(Text, nullable=False)

    # Job that produced this log
    job_id = Column(String(64), nullable=True)
    trigger_source = Column(String(50))

    created_at = Column(DateTime, default=now_utc, nullable=False, index=True)

    def __repr__(self):
        return f"<DiagnosticLog(id={self.id}, target={self.target_id}, steps={len(self.steps or [])})>"

    def get_steps(self) -> List[DiagnosticStep]:
        """Steps rehydrated as typed models."""
        return _steps_adapter.validate_python(self.steps or [])


class TargetLease(Base):
    """
    Short-lived mutual exclusion record: at most one unexpired row per target.
    """
    __tablename__ = 'target_leases'

    target_id = Column(String(MAX_TARGET_ID_LENGTH), primary_key=True)
    owner_token = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<TargetLease(target={self.target_id}, expires_at={self.expires_at})>"
