"""OrderApplicationService — the order lifecycle.

State machine (see OrderStatus.can_transition_to):
    PENDING_PAYMENT → PAID | CANCELLED
    PAID            → SHIPPED | CANCELLED
    SHIPPED         → DELIVERED

Stock is checked (not taken) at creation, committed on PAID and given back
when a PAID or SHIPPED order is cancelled. Every write path runs in one
transaction: `try ... commit / except: rollback; raise`.

`customer_id` arguments on read/write operations scope the call to one
customer; another customer's order behaves exactly like a missing one.
Admin callers pass None.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_catalog.application.service import CatalogApplicationService
from src.ms_catalog.domain.models import Instrument
from src.ms_common.datetime_utils import utc_now
from src.ms_common.enums import OrderStatus
from src.ms_common.errors import (
    ConcurrentModificationError,
    EmptyOrderError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    OrderNotCancellableError,
    OrderNotDeletableError,
    OrderNotFoundError,
    OrderNotPendingError,
    PendingOrderExistsError,
    UnknownCustomerError,
    UnknownInstrumentError,
)
from src.ms_common.id_generator import generate_id
from src.ms_common.pagination import cursor_decode, cursor_encode
from src.ms_order.application.schemas import (
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
)
from src.ms_order.domain.models import Order, OrderLine
from src.ms_order.domain.repository import OrderRepositoryProtocol
from src.ms_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

ADMIN_CANCEL_REASON = "Cancelled by administrator"


def _merge_lines(lines: list[tuple[str, int]]) -> dict[str, int]:
    """Collapse repeated instruments into one line, keeping first-seen order."""
    merged: dict[str, int] = {}
    for instrument_id, quantity in lines:
        if quantity <= 0:
            raise InvalidQuantityError(instrument_id, quantity)
        merged[instrument_id] = merged.get(instrument_id, 0) + quantity
    return merged


class OrderApplicationService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        catalog: CatalogApplicationService | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._catalog = catalog or CatalogApplicationService()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        customer_id: str,
        lines: list[tuple[str, int]],
    ) -> OrderResponse:
        """Place a PENDING_PAYMENT order with unit prices snapshotted from the catalog."""
        if not lines:
            raise EmptyOrderError()
        if not await self._repo.customer_exists(db, customer_id):
            raise UnknownCustomerError(customer_id)

        requested = _merge_lines(lines)
        instruments: dict[str, Instrument] = {}
        for instrument_id in requested:
            instrument = await self._catalog.find_instrument(db, instrument_id)
            if instrument is None:
                raise UnknownInstrumentError(instrument_id)
            instruments[instrument_id] = instrument

        pending = await self._repo.find_pending_by_customer(db, customer_id)
        if pending is not None:
            raise PendingOrderExistsError(customer_id, pending.id)

        order_id = generate_id()
        order_lines: list[OrderLine] = []
        for instrument_id, quantity in requested.items():
            instrument = instruments[instrument_id]
            if not instrument.has_stock_for(quantity):
                raise InsufficientStockError(instrument.name, instrument.stock, quantity)
            order_lines.append(
                OrderLine(
                    id=generate_id(),
                    order_id=order_id,
                    instrument_id=instrument_id,
                    quantity=quantity,
                    unit_price=await self._catalog.current_price(db, instrument_id),
                    instrument_name=instrument.name,
                    instrument_brand=instrument.brand,
                )
            )

        now = utc_now()
        order = Order(
            id=order_id,
            customer_id=customer_id,
            status=OrderStatus.PENDING_PAYMENT,
            lines=order_lines,
            created_at=now,
            status_changed_at=now,
        )
        try:
            await self._repo.save(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s created for customer %s: %d lines, total %d cents",
            order.id, customer_id, len(order.lines), order.total,
        )
        return OrderResponse.from_domain(order)

    async def confirm_payment(self, db: AsyncSession, order_id: str) -> Order:
        """PENDING_PAYMENT → PAID and take stock for every line, all or nothing.

        Losing a concurrent confirmation surfaces as OrderNotPendingError.
        """
        try:
            order = await self._require(db, order_id)
            if not order.is_pending_payment:
                raise OrderNotPendingError(order_id, order.status.value)

            moved = await self._repo.transition_status(
                db, order_id, OrderStatus.PENDING_PAYMENT, OrderStatus.PAID
            )
            if not moved:
                current = await self._repo.get_by_id(db, order_id)
                status = current.status.value if current else "DELETED"
                raise OrderNotPendingError(order_id, status)

            # Fixed lock order across concurrent confirmations
            for line in sorted(order.lines, key=lambda ln: ln.instrument_id):
                await self._catalog.reserve_stock(db, line.instrument_id, line.quantity)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        order.status = OrderStatus.PAID
        order.status_changed_at = utc_now()
        logger.info("Order %s confirmed as PAID, stock committed", order_id)
        return order

    async def cancel_order(
        self,
        db: AsyncSession,
        order_id: str,
        reason: str | None = None,
        customer_id: str | None = None,
    ) -> OrderResponse:
        """Cancel; stock goes back only if it had been committed (PAID / SHIPPED)."""
        try:
            order = await self._require(db, order_id, customer_id)
            if not order.is_cancellable:
                raise OrderNotCancellableError(order_id, order.status.value)

            previous = order.status
            moved = await self._repo.transition_status(
                db, order_id, previous, OrderStatus.CANCELLED, reason
            )
            if not moved:
                raise ConcurrentModificationError(order_id)

            if previous.holds_stock:
                for line in sorted(order.lines, key=lambda ln: ln.instrument_id):
                    await self._catalog.release_stock(db, line.instrument_id, line.quantity)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        order.status = OrderStatus.CANCELLED
        order.cancel_reason = reason or order.cancel_reason
        order.status_changed_at = utc_now()
        logger.info(
            "Order %s cancelled from %s (stock released: %s)",
            order_id, previous.value, previous.holds_stock,
        )
        return OrderResponse.from_domain(order)

    async def update_status(
        self, db: AsyncSession, order_id: str, new_status: OrderStatus
    ) -> OrderResponse:
        """Administrative transition, validated against the state machine."""
        order = await self._require(db, order_id)
        if not order.status.can_transition_to(new_status):
            raise InvalidStatusTransitionError(order_id, order.status.value, new_status.value)

        # Transitions that move stock go through the operation that owns them
        if new_status == OrderStatus.PAID:
            return OrderResponse.from_domain(await self.confirm_payment(db, order_id))
        if new_status == OrderStatus.CANCELLED:
            return await self.cancel_order(db, order_id, ADMIN_CANCEL_REASON)

        previous = order.status
        try:
            moved = await self._repo.transition_status(db, order_id, previous, new_status)
            if not moved:
                raise ConcurrentModificationError(order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        order.status = new_status
        order.status_changed_at = utc_now()
        logger.info("Order %s moved %s -> %s", order_id, previous.value, new_status.value)
        return OrderResponse.from_domain(order)

    async def delete_order(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> None:
        """Remove an unpaid order and its lines; payments stay on record."""
        try:
            order = await self._require(db, order_id, customer_id)
            if not order.is_pending_payment:
                raise OrderNotDeletableError(order_id, order.status.value)
            if not await self._repo.delete(db, order_id):
                raise ConcurrentModificationError(order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s deleted", order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def load_order(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> Order:
        return await self._require(db, order_id, customer_id)

    async def find_order(self, db: AsyncSession, order_id: str) -> Order | None:
        return await self._repo.get_by_id(db, order_id)

    async def get_order(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> OrderResponse:
        return OrderResponse.from_domain(await self._require(db, order_id, customer_id))

    async def get_pending_order(
        self, db: AsyncSession, customer_id: str
    ) -> OrderResponse | None:
        order = await self._repo.find_pending_by_customer(db, customer_id)
        return OrderResponse.from_domain(order) if order else None

    async def list_orders(
        self,
        db: AsyncSession,
        customer_id: str | None,
        status: OrderStatus | None,
        cursor: str | None,
        limit: int,
    ) -> OrderListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self._repo.list_orders(db, customer_id, status, cursor_id, limit + 1)
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_stats(self, db: AsyncSession) -> OrderStatsResponse:
        return OrderStatsResponse.from_domain(await self._repo.stats(db))

    async def _require(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotFoundError(order_id)
        return order
