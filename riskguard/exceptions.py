"""
Exceptions raised by the risk scoring pipeline.
"""


class RiskGuardError(Exception):
    """Base class for pipeline errors."""


class InvalidTransactionError(RiskGuardError, ValueError):
    """Raised when an ingested payload cannot be turned into a Transaction."""


class StorageError(RiskGuardError):
    """Raised when a store operation keeps failing after retries."""


class AlertNotFoundError(RiskGuardError, LookupError):
    """Raised when a review targets an alert that does not exist."""

    def __init__(self, alert_id: str):
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class InvalidTransitionError(RiskGuardError):
    """Raised when a review would move an alert out of a terminal state."""

    def __init__(self, alert_id: str, current_status: str, requested: str):
        super().__init__(
            f"Alert {alert_id} cannot move from {current_status} to {requested}"
        )
        self.alert_id = alert_id
        self.current_status = current_status
        self.requested = requested
