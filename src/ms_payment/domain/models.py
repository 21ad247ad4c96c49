"""Payment domain models and gateway value types — no SQLAlchemy, no httpx."""

from dataclasses import dataclass, field
from datetime import datetime

from src.ms_common.enums import PaymentStatus


@dataclass
class Payment:
    id: str
    order_id: str
    amount: int  # cents, the order total when the intent was created
    status: PaymentStatus = PaymentStatus.PENDING
    intent_reference: str | None = None
    external_transaction_id: str | None = None
    payment_method: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Gateway contract types
# ---------------------------------------------------------------------------


@dataclass
class IntentItem:
    title: str
    description: str | None
    quantity: int
    unit_price: int  # cents
    currency: str


@dataclass
class Payer:
    email: str
    name: str | None = None


@dataclass
class RedirectUrls:
    success: str
    failure: str
    pending: str


@dataclass
class PaymentIntentRequest:
    items: list[IntentItem]
    payer: Payer
    redirect_urls: RedirectUrls
    external_reference: str  # our order id, echoed back on every transaction
    notification_url: str | None = None
    statement_descriptor: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentIntent:
    id: str
    redirect_url: str
    sandbox_redirect_url: str | None = None


@dataclass
class GatewayTransaction:
    id: str
    status: str  # raw gateway vocabulary; map with PaymentStatus.from_gateway
    external_reference: str | None = None
    amount: int | None = None  # cents
    status_detail: str | None = None
    payment_method: str | None = None
    date_created: datetime | None = None
