"""Exceptions raised by the diagnostic engine."""


class DiagnosticsError(Exception):
    """Base class for diagnostic engine errors."""


class UnauthorizedError(DiagnosticsError):
    """Webhook API key missing or wrong."""


class BadRequestError(DiagnosticsError):
    """Inbound payload is missing required fields."""


class GatewayUnavailableError(DiagnosticsError):
    """The Device/Account Gateway could not be reached at all."""


class TargetNotFoundError(DiagnosticsError):
    """The Gateway knows neither a device nor a subscriber with this id."""


class LeaseHeldError(DiagnosticsError):
    """Another worker is already diagnosing this target."""

    def __init__(self, target_id: str):
        super().__init__(f"A diagnostic for target {target_id} is already in progress")
        self.target_id = target_id


class LogNotFoundError(DiagnosticsError):
    """No diagnostic log with the requested id."""
