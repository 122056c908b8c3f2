"""
Diagnostic step models.

Each step carries a typed ``details`` payload. The payload is a tagged union
discriminated on ``type``; which payloads a step may carry is decided by its
``StepKind`` (see ``STEP_DETAIL_TYPES``). Skipped and error payloads are valid
for every kind.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from diagnostics_api.models.diagnostics.enums import AccountStatus, NeighborMode, StepKind, StepStatus


class NeighborRecord(BaseModel):
    """One neighbor evaluated by a neighbor analysis step."""
    model_config = ConfigDict(frozen=True)

    neighbor_id: str
    name: str
    is_online: bool
    account_status: AccountStatus = AccountStatus.UNKNOWN
    reason: str = ""


class EmptyDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class BillingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["billing"] = "billing"
    account_id: Optional[str] = None
    account_status: AccountStatus = AccountStatus.UNKNOWN
    expiry_date: Optional[datetime] = None


class RouterDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["router"] = "router"
    router_id: Optional[str] = None
    router_name: Optional[str] = None
    reachable: bool = False


class PingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["ping"] = "ping"
    probe: str  # "Ping Initial Device", "Ping Station" or "Ping Access Point"
    device_id: str
    device_name: Optional[str] = None
    reachable: bool
    attempts: int = 1


class NeighborAnalysisDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["neighbor_analysis"] = "neighbor_analysis"
    mode: NeighborMode
    neighbors: List[NeighborRecord] = Field(default_factory=list)


class UserStatusDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["user_status"] = "user_status"
    user_id: str
    user_name: Optional[str] = None
    is_online: bool = False
    account_status: AccountStatus = AccountStatus.UNKNOWN


class SkippedDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["skipped"] = "skipped"
    requires: List[StepKind] = Field(default_factory=list)


class ErrorDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    error_type: str
    message: str


StepDetails = Annotated[
    Union[
        EmptyDetails,
        BillingDetails,
        RouterDetails,
        PingDetails,
        NeighborAnalysisDetails,
        UserStatusDetails,
        SkippedDetails,
        ErrorDetails,
    ],
    Field(discriminator="type"),
]

STEP_DETAIL_TYPES: Dict[StepKind, Tuple[Type[BaseModel], ...]] = {
    StepKind.BILLING: (BillingDetails, EmptyDetails),
    StepKind.ROUTER: (RouterDetails,),
    StepKind.CPE: (PingDetails,),
    StepKind.AP: (PingDetails, EmptyDetails),
    StepKind.NEIGHBOR_STATION: (NeighborAnalysisDetails,),
    StepKind.NEIGHBOR_APARTMENT: (NeighborAnalysisDetails,),
    StepKind.USER_STATUS: (UserStatusDetails,),
    StepKind.TARGET_LOOKUP: (EmptyDetails,),
    StepKind.TIMEOUT: (EmptyDetails,),
    StepKind.INFRASTRUCTURE: (EmptyDetails,),
}

_ALWAYS_ALLOWED = (SkippedDetails, ErrorDetails)


class DiagnosticStep(BaseModel):
    """A completed pipeline step. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    kind: StepKind
    status: StepStatus
    summary: str
    details: StepDetails = Field(default_factory=EmptyDetails)

    @computed_field
    @property
    def step_name(self) -> str:
        return self.kind.value

    @model_validator(mode="after")
    def _check_details_match_kind(self) -> "DiagnosticStep":
        allowed = STEP_DETAIL_TYPES[self.kind] + _ALWAYS_ALLOWED
        if not isinstance(self.details, allowed):
            raise ValueError(
                f"{type(self.details).__name__} is not a valid payload for step '{self.kind.value}'"
            )
        return self

    @classmethod
    def skipped(cls, kind: StepKind, requires: List[StepKind]) -> "DiagnosticStep":
        names = ", ".join(r.value for r in requires)
        return cls(
            kind=kind,
            status=StepStatus.SKIPPED,
            summary=f"Skipped because {names} did not succeed.",
            details=SkippedDetails(requires=requires),
        )

    @classmethod
    def from_error(cls, kind: StepKind, error: BaseException) -> "DiagnosticStep":
        return cls(
            kind=kind,
            status=StepStatus.FAILURE,
            summary=f"{kind.value} could not be completed: {error}",
            details=ErrorDetails(error_type=type(error).__name__, message=str(error)),
        )
