"""Typed errors raised by the storefront services.

Each error carries a stable ``code`` that clients can switch on and the HTTP
status the API layer renders it with.
"""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class BadRequestError(StorefrontError):
    """Input was well-formed but cannot be acted on (e.g. an empty cart)."""

    code = "BAD_REQUEST"
    status_code = 400


class UnauthorizedError(StorefrontError):
    code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(StorefrontError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(StorefrontError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, key, code: str | None = None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found", code=code)


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, key):
        super().__init__("Order", key)


class ConflictError(StorefrontError):
    """The request conflicts with the current state of the entity."""

    code = "CONFLICT"
    status_code = 409


class DuplicateOrderNumberError(ConflictError):
    code = "DUPLICATE_ORDER_NUMBER"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order number {order_number} already exists")


class PaymentDeclinedError(StorefrontError):
    """The card processor refused the charge. The order stays pending."""

    code = "PAYMENT_DECLINED"
    status_code = 402


class PaymentGatewayUnavailableError(StorefrontError):
    """The card processor could not be reached. Retry later."""

    code = "PAYMENT_GATEWAY_UNAVAILABLE"
    status_code = 503


class InfrastructureError(StorefrontError):
    """Database or other backing service failure. Nothing was committed."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code:
            self.status_code = status_code


class NotificationError(Exception):
    """Raised by the notification client. Never escapes a triggering write."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
