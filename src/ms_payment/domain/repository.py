"""Payment persistence and payment gateway contracts."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.enums import PaymentStatus
from src.ms_payment.domain.models import (
    GatewayTransaction,
    Payment,
    PaymentIntent,
    PaymentIntentRequest,
)


class PaymentRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payment: Payment) -> None: ...

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None: ...

    async def get_by_intent_reference(
        self, db: AsyncSession, intent_reference: str
    ) -> Payment | None: ...

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[Payment]:
        """Newest first."""
        ...

    async def find_open_for_order(
        self, db: AsyncSession, order_id: str
    ) -> Payment | None:
        """Newest pending or in_process payment of the order."""
        ...

    async def has_approved(self, db: AsyncSession, order_id: str) -> bool: ...

    async def set_intent_reference(
        self, db: AsyncSession, payment_id: str, intent_reference: str
    ) -> None: ...

    async def update_status(
        self,
        db: AsyncSession,
        payment_id: str,
        expected_status: PaymentStatus,
        new_status: PaymentStatus,
        transaction_id: str | None = None,
        payment_method: str | None = None,
    ) -> Payment | None:
        """Compare-and-set on status; None if the payment had already moved."""
        ...


class PaymentGatewayProtocol(Protocol):
    async def create_intent(self, request: PaymentIntentRequest) -> PaymentIntent:
        """Raises GatewayError on any provider or transport failure."""
        ...

    async def get_transaction(self, transaction_id: str) -> GatewayTransaction | None: ...

    async def search_transactions(
        self, external_reference: str
    ) -> list[GatewayTransaction]: ...
