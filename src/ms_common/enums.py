"""Global enums — must match DB CHECK constraints exactly.

OrderStatus and PaymentStatus also carry their state machines, so every
module asks the enum rather than re-encoding the transition rules.
"""

from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        return new_status in _ORDER_TRANSITIONS[self]

    @property
    def is_final(self) -> bool:
        return not _ORDER_TRANSITIONS[self]

    @property
    def holds_stock(self) -> bool:
        """Stock was committed when the order was paid and not yet given back."""
        return self in (OrderStatus.PAID, OrderStatus.SHIPPED)


_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Orders whose amount counts as realised sales
SALES_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.PAID,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    IN_PROCESS = "in_process"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in (PaymentStatus.PENDING, PaymentStatus.IN_PROCESS)

    @property
    def is_final(self) -> bool:
        return not self.is_open

    @classmethod
    def from_gateway(cls, raw: str | None) -> "PaymentStatus | None":
        """Map a gateway status string to ours; None for anything unrecognised."""
        if not raw:
            return None
        value = raw.strip().lower()
        if value in _GATEWAY_ALIASES:
            return _GATEWAY_ALIASES[value]
        try:
            return cls(value)
        except ValueError:
            return None


_GATEWAY_ALIASES: dict[str, PaymentStatus] = {
    "authorized": PaymentStatus.IN_PROCESS,
    "in_mediation": PaymentStatus.IN_PROCESS,
}
