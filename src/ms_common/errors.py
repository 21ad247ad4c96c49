"""Unified error codes and custom exceptions.

Every domain error belongs to one of the taxonomy bases below, which fix
the HTTP status; concrete subclasses fix a stable numeric code.

Error code ranges:
  1xxx: Auth/User
  2xxx: Catalog
  3xxx: Order
  4xxx: Payment
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Taxonomy ---

class ValidationError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 422)


class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 409)


class GatewayError(AppError):
    """Payment gateway unreachable or returned an error; wraps the provider detail."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(4003, f"Payment gateway error: {detail}", 502)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Administrator role required", 403)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1007, f"User not found: {user_id}")


class SelfDemotionError(ValidationError):
    """An administrator may not revoke their own role or disable their own account."""

    def __init__(self) -> None:
        super().__init__(1008, "Administrators cannot demote or disable themselves")


# --- 2xxx: Catalog ---

class InstrumentNotFoundError(NotFoundError):
    def __init__(self, instrument_id: str) -> None:
        super().__init__(2001, f"Instrument not found: {instrument_id}")


class PriceNotFoundError(NotFoundError):
    def __init__(self, instrument_id: str) -> None:
        super().__init__(2002, f"No price recorded for instrument {instrument_id}")


class InsufficientStockError(ConflictError):
    def __init__(self, instrument: str, available: int, requested: int) -> None:
        self.instrument = instrument
        self.available = available
        self.requested = requested
        super().__init__(
            2003,
            f"Insufficient stock for {instrument}: available {available}, requested {requested}",
        )


class InvalidPriceError(ValidationError):
    def __init__(self, price: int) -> None:
        super().__init__(2004, f"Price must be positive, got {price} cents")


# --- 3xxx: Order ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3001, f"Order not found: {order_id}")


class EmptyOrderError(ValidationError):
    def __init__(self) -> None:
        super().__init__(3002, "Order must contain at least one line")


class UnknownCustomerError(ValidationError):
    def __init__(self, customer_id: str) -> None:
        super().__init__(3003, f"Unknown customer: {customer_id}")


class UnknownInstrumentError(ValidationError):
    def __init__(self, instrument_id: str) -> None:
        super().__init__(3004, f"Unknown instrument: {instrument_id}")


class PendingOrderExistsError(ConflictError):
    def __init__(self, customer_id: str, pending_order_id: str | None = None) -> None:
        self.pending_order_id = pending_order_id
        detail = f" (order {pending_order_id})" if pending_order_id else ""
        super().__init__(
            3005,
            f"Customer {customer_id} already has an order awaiting payment{detail}",
        )


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, order_id: str, current: str, attempted: str) -> None:
        super().__init__(
            3006,
            f"Order {order_id} cannot move from {current} to {attempted}",
        )


class OrderNotPendingError(ValidationError):
    def __init__(self, order_id: str, status: str) -> None:
        self.status = status
        super().__init__(
            3007,
            f"Order {order_id} is {status}, expected PENDING_PAYMENT",
        )


class OrderNotCancellableError(ValidationError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(3008, f"Order {order_id} in status {status} cannot be cancelled")


class OrderNotDeletableError(ValidationError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(
            3009,
            f"Order {order_id} in status {status} cannot be deleted, only PENDING_PAYMENT orders can",
        )


class InvalidQuantityError(ValidationError):
    def __init__(self, instrument_id: str, quantity: int) -> None:
        super().__init__(3010, f"Quantity for {instrument_id} must be positive, got {quantity}")


class ConcurrentModificationError(ConflictError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3011, f"Order {order_id} was modified concurrently, retry the operation")


# --- 4xxx: Payment ---

class PaymentNotFoundError(NotFoundError):
    def __init__(self, reference: str) -> None:
        super().__init__(4001, f"Payment not found: {reference}")


class OrderNotPayableError(ValidationError):
    def __init__(self, order_id: str, reason: str) -> None:
        super().__init__(4002, f"Order {order_id} cannot be paid: {reason}")


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
