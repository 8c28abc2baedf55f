"""Error hierarchy for the order console.

Exception Hierarchy:
    OrderConsoleError (base)
    ├── ValidationError - Bad input to an operation
    │   ├── InvalidWebhookURLError - Malformed webhook URL
    │   └── WebhookValidationError - Webhook endpoint failed its test post
    ├── AuthenticationError - No session or bad password
    │   └── StepUpRequiredError - Password re-entry missing for a terminal transition
    ├── PermissionDeniedError - Role not allowed to perform the operation
    ├── DataAccessError - Backing store read/write failed
    │   └── OrderNotFoundError - Order id does not exist
    ├── InvalidTransitionError - Status change not allowed by the state machine
    └── NotificationError - Webhook notification failed
        ├── WebhookAttemptError - One POST failed (retryable)
        └── WebhookDeliveryError - Delivery to one destination exhausted its attempts
"""

from typing import Any


class OrderConsoleError(Exception):
    """Base exception for all order console errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
        recoverable: Whether the error can be recovered from.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ValidationError(OrderConsoleError):
    """Input to an operation failed validation."""


class InvalidWebhookURLError(ValidationError):
    """Webhook URL is malformed and can never be delivered to."""

    def __init__(self, url: str, reason: str = "Invalid webhook URL format") -> None:
        super().__init__(reason, details={"url": url})
        self.url = url


class WebhookValidationError(ValidationError):
    """Webhook endpoint did not accept the test message."""


class AuthenticationError(OrderConsoleError):
    """No authenticated session, or the supplied credential was rejected."""


class StepUpRequiredError(AuthenticationError):
    """A password must be re-entered before this transition."""

    def __init__(self, status: str) -> None:
        super().__init__(
            f"Password required to change status to {status}",
            details={"status": status},
        )
        self.status = status


class PermissionDeniedError(OrderConsoleError):
    """The current user's role does not permit the operation."""


class DataAccessError(OrderConsoleError):
    """A backing-store call failed.

    Attributes:
        operation: Store operation that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base["operation"] = self.operation
        return base


class OrderNotFoundError(DataAccessError):
    """The requested order does not exist."""

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Order not found: {order_id}",
            operation="read_order",
            details={"order_id": order_id},
        )
        self.order_id = order_id


class InvalidTransitionError(OrderConsoleError):
    """The requested status change is not allowed."""

    def __init__(self, order_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot change order {order_id} from {current} to {requested}",
            details={"order_id": order_id, "current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class NotificationError(OrderConsoleError):
    """Base class for webhook notification failures."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details, recoverable=True)


class WebhookAttemptError(NotificationError):
    """A single delivery attempt failed and may be retried.

    Attributes:
        url: Destination URL.
        status_code: HTTP status of the response, if one was received.
    """

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message, details={"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class WebhookDeliveryError(NotificationError):
    """Delivery to one destination failed permanently.

    The last underlying error is available as ``__cause__``.

    Attributes:
        url: Destination URL.
        attempts: Number of POSTs made.
    """

    def __init__(self, url: str, attempts: int, last_error: str | None = None) -> None:
        super().__init__(
            f"Failed to send webhook notification after {attempts} attempts",
            details={"url": url, "attempts": attempts, "last_error": last_error},
        )
        self.url = url
        self.attempts = attempts
