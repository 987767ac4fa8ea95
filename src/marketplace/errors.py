"""Typed errors raised by the marketplace state machines.

Each error carries the HTTP status the API boundary answers with and a
machine-readable ``code`` for clients. Malformed input is reported with
protean's ``ValidationError`` instead.
"""


class MarketplaceError(Exception):
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class Unauthenticated(MarketplaceError):
    status_code = 401
    code = "UNAUTHENTICATED"


class NotFoundError(MarketplaceError):
    status_code = 404
    code = "NOT_FOUND"


class SessionNotFound(NotFoundError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__("Checkout session not found", details={"session_id": str(session_id)})


class ForbiddenError(MarketplaceError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(MarketplaceError):
    status_code = 409
    code = "CONFLICT"


class InvalidTransition(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, current_state: str, action: str):
        super().__init__(
            f"Cannot {action} {entity} in '{current_state}' status",
            details={"current_state": current_state, "action": action},
        )
        self.current_state = current_state
        self.action = action


class InsufficientStock(ConflictError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, listing_id: str, title: str, available: int, requested: int):
        super().__init__(
            f"{title} has insufficient stock. Available: {available}, Requested: {requested}",
            details={"listing_id": str(listing_id), "available": available, "requested": requested},
        )


class StockChangedSinceReservation(ConflictError):
    code = "STOCK_CHANGED"

    def __init__(self, failures: list[dict]):
        super().__init__(
            "Some items are no longer available in the reserved quantity",
            details={"failures": failures},
        )


class DuplicateQuoteRequest(ConflictError):
    code = "DUPLICATE_QUOTE_REQUEST"


class ExpiredError(MarketplaceError):
    status_code = 400
    code = "EXPIRED"


class InvalidDeliveryMethod(MarketplaceError):
    status_code = 400
    code = "INVALID_DELIVERY_METHOD"


class PaymentMethodNotAllowed(MarketplaceError):
    status_code = 400
    code = "PAYMENT_METHOD_NOT_ALLOWED"


class PaymentFailed(MarketplaceError):
    status_code = 400
    code = "PAYMENT_FAILED"
