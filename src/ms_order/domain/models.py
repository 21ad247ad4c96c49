"""Order and OrderLine: plain dataclasses, totals always derived from the lines."""

from dataclasses import dataclass, field
from datetime import datetime

from src.ms_common.enums import OrderStatus


@dataclass
class OrderLine:
    id: str
    order_id: str
    instrument_id: str
    quantity: int
    unit_price: int  # cents, snapshot of the catalog price at order creation
    # Joined from instruments for display and gateway item titles
    instrument_name: str | None = None
    instrument_brand: str | None = None

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price


@dataclass
class Order:
    id: str
    customer_id: str
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    lines: list[OrderLine] = field(default_factory=list)
    cancel_reason: str | None = None
    created_at: datetime | None = None
    status_changed_at: datetime | None = None

    @property
    def total(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def is_pending_payment(self) -> bool:
        return self.status == OrderStatus.PENDING_PAYMENT

    @property
    def is_cancellable(self) -> bool:
        """Anything not yet delivered or cancelled; SHIPPED included."""
        return not self.status.is_final


@dataclass
class OrderStats:
    counts: dict[str, int]
    sales_total: int  # cents over PAID / SHIPPED / DELIVERED
