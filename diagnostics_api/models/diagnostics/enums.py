"""Enumerations shared by the diagnostic models."""

import enum


class TargetType(str, enum.Enum):
    """What a diagnostic run is evaluating."""
    DEVICE = "Device"
    USER = "User"


class DeviceRole(str, enum.Enum):
    """Topology role of a network device."""
    STATION = "Station"
    ACCESS_POINT = "AccessPoint"
    ROUTER = "Router"
    OTHER = "Other"


class StepStatus(str, enum.Enum):
    """Outcome of a single diagnostic step."""
    SUCCESS = "Success"
    FAILURE = "Failure"
    WARNING = "Warning"
    SKIPPED = "Skipped"


class AccountStatus(str, enum.Enum):
    """Billing state of a subscriber account."""
    ACTIVE = "Active"
    EXPIRED = "Expired"
    SUSPENDED = "Suspended"
    UNKNOWN = "Unknown"


class NeighborMode(str, enum.Enum):
    """How the neighbor set of a target is resolved."""
    STATION_BASED = "Station-Based"
    APARTMENT_BASED = "Apartment-Based"


class StepKind(str, enum.Enum):
    """
    Stable step identifiers. The value is the step name written to the log.
    """
    BILLING = "Billing Check"
    ROUTER = "Mikrotik Router Check"
    CPE = "CPE Check"
    AP = "AP Check"
    NEIGHBOR_STATION = "Neighbor Analysis (Station-Based)"
    NEIGHBOR_APARTMENT = "Neighbor Analysis (Apartment-Based)"
    USER_STATUS = "User Status"
    TARGET_LOOKUP = "Target Lookup"
    TIMEOUT = "Diagnostic Timeout"
    INFRASTRUCTURE = "Infrastructure Fault"
