"""Persistence contract for orders and their lines, with status compare-and-set."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.enums import OrderStatus
from src.ms_order.domain.models import Order, OrderStats


class OrderRepositoryProtocol(Protocol):
    async def customer_exists(self, db: AsyncSession, customer_id: str) -> bool: ...

    async def find_pending_by_customer(
        self, db: AsyncSession, customer_id: str
    ) -> Order | None: ...

    async def save(self, db: AsyncSession, order: Order) -> None:
        """Insert order and lines; PendingOrderExistsError on the one-pending index."""
        ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def list_orders(
        self,
        db: AsyncSession,
        customer_id: str | None,
        status: OrderStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]: ...

    async def transition_status(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        reason: str | None = None,
    ) -> bool:
        """Compare-and-set; False if the order was no longer in from_status."""
        ...

    async def delete(self, db: AsyncSession, order_id: str) -> bool: ...

    async def stats(self, db: AsyncSession) -> OrderStats: ...
