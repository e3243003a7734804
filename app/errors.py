"""Domain errors shared by services and routers.

Each error carries the machine-readable ``code`` and HTTP ``status_code``
used by the API's error envelope.
"""

from typing import Literal

DeliveryCause = Literal["timeout", "network", "server"]


class AppError(Exception):
    """Base class for errors rendered as ``{"error": {...}}`` responses."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Input has the wrong shape, e.g. an empty message body."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(AppError):
    """Referenced record does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(AppError):
    """Caller does not own the referenced record."""

    code = "FORBIDDEN"
    status_code = 403


class DeliveryError(AppError):
    """Every delivery backend failed."""

    code = "DELIVERY_FAILED"
    status_code = 503

    _DESCRIPTIONS = {
        "timeout": "the message service did not respond in time",
        "network": "the message service could not be reached",
        "server": "the message service reported an error",
    }

    def __init__(self, cause: DeliveryCause, attempts: int = 0):
        self.cause = cause
        self.attempts = attempts
        super().__init__(
            f"Delivery failed after {attempts} attempt(s): {self._DESCRIPTIONS[cause]}"
        )


class PartialFanoutError(AppError):
    """Fan-out finished but some recipients did not get a notification.

    Returned inside a fan-out result, never raised.
    """

    code = "PARTIAL_FANOUT"
    status_code = 207

    def __init__(self, failed: int, attempted: int):
        self.failed = failed
        self.attempted = attempted
        super().__init__(f"{failed} of {attempted} notifications could not be created")
