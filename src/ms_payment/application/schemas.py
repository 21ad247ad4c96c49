"""Pydantic schemas for the payment API."""

from datetime import datetime

from pydantic import BaseModel

from src.ms_common.cents import cents_to_display
from src.ms_common.enums import PaymentStatus
from src.ms_payment.domain.models import Payment


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    amount_cents: int
    amount_display: str
    status: str
    intent_reference: str | None
    external_transaction_id: str | None
    payment_method: str | None
    description: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount_cents=payment.amount,
            amount_display=cents_to_display(payment.amount),
            status=payment.status.value,
            intent_reference=payment.intent_reference,
            external_transaction_id=payment.external_transaction_id,
            payment_method=payment.payment_method,
            description=payment.description,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class PaymentInitResponse(BaseModel):
    payment_id: str
    order_id: str
    intent_reference: str
    redirect_url: str
    amount_cents: int
    amount_display: str


class PaymentStatusResponse(BaseModel):
    intent_reference: str
    status: str
    approved: bool

    @classmethod
    def of(cls, intent_reference: str, status: PaymentStatus) -> "PaymentStatusResponse":
        return cls(
            intent_reference=intent_reference,
            status=status.value,
            approved=status == PaymentStatus.APPROVED,
        )


class ApprovedPaymentResponse(BaseModel):
    order_id: str
    has_approved_payment: bool
