"""Diagnostic job model."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from diagnostics_api.models.diagnostics.enums import TargetType
from diagnostics_api.utils.timezone import now_utc


MAX_TARGET_ID_LENGTH = 100


def dedupe_key_for(target_id: str) -> str:
    """Key that identifies every job and lease for one target."""
    return f"diagnostic:{target_id}"


class DiagnosticJob(BaseModel):
    """A request to diagnose one target. Lives only until a worker starts it."""

    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    target_id: str = Field(min_length=1, max_length=MAX_TARGET_ID_LENGTH)
    target_type: Optional[TargetType] = None
    requested_at: datetime = Field(default_factory=now_utc)
    user_checks: List[str] = Field(default_factory=list)
    attempt: int = 0
    source: str = "webhook"

    @computed_field
    @property
    def dedupe_key(self) -> str:
        return dedupe_key_for(self.target_id)

    def next_attempt(self) -> "DiagnosticJob":
        """Copy of this job scheduled for redelivery."""
        return self.model_copy(update={"attempt": self.attempt + 1})
