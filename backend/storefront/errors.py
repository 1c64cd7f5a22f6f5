"""
Error taxonomy for the storefront core.

Every error carries an HTTP-equivalent status code and a short ``kind`` so
the API layer can tell "fix your input" apart from "try again later" and
"contact support". Nothing here is retried automatically.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StorefrontError):
    """Raised when a required field is missing or malformed."""

    status_code = 400
    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidTransitionError(StorefrontError):
    """Raised when a status change is not allowed from the current state."""

    status_code = 409
    kind = "invalid_transition"

    def __init__(self, machine: str, current: str, requested: str, message: Optional[str] = None):
        self.machine = machine
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot move {machine} from '{current}' to '{requested}'")


class NotFoundError(StorefrontError):
    """Raised when an order, product or admin user id does not resolve."""

    status_code = 404
    kind = "not_found"

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class StaleOrderError(StorefrontError):
    """Raised when an order was modified since the caller read it."""

    status_code = 409
    kind = "stale_write"

    def __init__(self, order_id: str, expected: Optional[int] = None, actual: Optional[int] = None):
        self.order_id = order_id
        self.expected = expected
        self.actual = actual
        msg = f"Order {order_id} was modified concurrently"
        if expected is not None:
            msg = f"{msg} (expected version {expected}, found {actual})"
        super().__init__(msg)


class ExternalServiceError(StorefrontError):
    """Raised when the payment processor or database call fails."""

    status_code = 502
    kind = "external_service_error"

    def __init__(self, service: str, message: str, processor_code: Optional[str] = None):
        self.service = service
        self.processor_code = processor_code
        super().__init__(f"{service}: {message}")


class PaymentNotCapturableError(ExternalServiceError):
    """Raised when a hold is no longer in a capturable state."""

    status_code = 409
    kind = "payment_not_capturable"

    def __init__(self, intent_id: str, status: str):
        self.intent_id = intent_id
        self.intent_status = status
        super().__init__(
            "payments",
            f"Payment intent {intent_id} status is {status}, cannot capture",
        )


class ConfigurationError(StorefrontError):
    """Raised when payment credentials are absent and demo mode is not allowed."""

    status_code = 503
    kind = "configuration_error"


class PermissionDeniedError(StorefrontError):
    """Raised when an admin user lacks a required permission."""

    status_code = 403
    kind = "permission_denied"


class DuplicateOrderError(StorefrontError):
    """Raised when a payment hold already has an order recorded against it."""

    status_code = 409
    kind = "duplicate_order"

    def __init__(self, payment_intent_id: str, order_id: Optional[str] = None):
        self.payment_intent_id = payment_intent_id
        self.order_id = order_id
        msg = f"Payment intent {payment_intent_id} already has an order"
        if order_id:
            msg = f"{msg}: {order_id}"
        super().__init__(msg)
