"""Pydantic schemas for the order API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.ms_common.cents import cents_to_display
from src.ms_common.enums import OrderStatus
from src.ms_order.domain.models import Order, OrderLine, OrderStats


class OrderLineRequest(BaseModel):
    instrument_id: str = Field(..., min_length=1, max_length=32)
    quantity: int = Field(..., gt=0, le=1000)


class CreateOrderRequest(BaseModel):
    lines: list[OrderLineRequest]


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(None, max_length=255)


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


class OrderLineResponse(BaseModel):
    id: str
    instrument_id: str
    instrument_name: str | None
    instrument_brand: str | None
    quantity: int
    unit_price_cents: int
    unit_price_display: str
    subtotal_cents: int
    subtotal_display: str

    @classmethod
    def from_domain(cls, line: OrderLine) -> "OrderLineResponse":
        return cls(
            id=line.id,
            instrument_id=line.instrument_id,
            instrument_name=line.instrument_name,
            instrument_brand=line.instrument_brand,
            quantity=line.quantity,
            unit_price_cents=line.unit_price,
            unit_price_display=cents_to_display(line.unit_price),
            subtotal_cents=line.subtotal,
            subtotal_display=cents_to_display(line.subtotal),
        )


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    status: str
    total_cents: int
    total_display: str
    cancel_reason: str | None
    created_at: datetime | None
    status_changed_at: datetime | None
    lines: list[OrderLineResponse]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            status=order.status.value,
            total_cents=order.total,
            total_display=cents_to_display(order.total),
            cancel_reason=order.cancel_reason,
            created_at=order.created_at,
            status_changed_at=order.status_changed_at,
            lines=[OrderLineResponse.from_domain(line) for line in order.lines],
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class OrderStatsResponse(BaseModel):
    counts: dict[str, int]
    total_orders: int
    sales_total_cents: int
    sales_total_display: str

    @classmethod
    def from_domain(cls, stats: OrderStats) -> "OrderStatsResponse":
        return cls(
            counts=stats.counts,
            total_orders=sum(stats.counts.values()),
            sales_total_cents=stats.sales_total,
            sales_total_display=cents_to_display(stats.sales_total),
        )
