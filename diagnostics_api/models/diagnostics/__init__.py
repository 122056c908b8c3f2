"""Diagnostic engine models."""

from .enums import AccountStatus, DeviceRole, NeighborMode, StepKind, StepStatus, TargetType
from .steps import DiagnosticStep, NeighborRecord
from .jobs import DiagnosticJob
from .gateway import AccountInfo, GatewayDevice, GatewayNeighbor
from .diagnostic_log import DiagnosticLog, TargetLease
from .queued_job import QueuedJob

__all__ = [
    'AccountStatus', 'DeviceRole', 'NeighborMode', 'StepKind', 'StepStatus', 'TargetType',
    'DiagnosticStep', 'NeighborRecord', 'DiagnosticJob',
    'AccountInfo', 'GatewayDevice', 'GatewayNeighbor',
    'DiagnosticLog', 'TargetLease', 'QueuedJob'
]
