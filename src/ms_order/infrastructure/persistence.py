"""OrderRepository — raw SQL persistence implementation.

Status changes are compare-and-set UPDATEs (`WHERE status = :from_status`);
zero rows back means another request moved the order first. At most one
PENDING_PAYMENT order per customer is enforced by the partial unique index
uq_orders_one_pending_per_customer.

Transaction ownership: the CALLER commits or rolls back.
"""

import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.database import violates_constraint
from src.ms_common.enums import SALES_STATUSES, OrderStatus
from src.ms_common.errors import PendingOrderExistsError
from src.ms_order.domain.models import Order, OrderLine, OrderStats

ONE_PENDING_ORDER_INDEX = "uq_orders_one_pending_per_customer"

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_CUSTOMER_EXISTS_SQL = text("""
    SELECT 1 FROM users WHERE id = :customer_id AND is_active
""")

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, customer_id, status, total_cents, created_at, status_changed_at)
    VALUES (:id, :customer_id, :status, :total_cents, :created_at, :status_changed_at)
""")

_INSERT_LINE_SQL = text("""
    INSERT INTO order_lines (id, order_id, instrument_id, quantity, unit_price_cents)
    VALUES (:id, :order_id, :instrument_id, :quantity, :unit_price_cents)
""")

_ORDER_COLUMNS = """
    id, customer_id, status, total_cents, cancel_reason, created_at, status_changed_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders WHERE id = :id
""")

_FIND_PENDING_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    WHERE customer_id = :customer_id AND status = 'PENDING_PAYMENT'
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    WHERE (CAST(:customer_id AS TEXT) IS NULL OR customer_id = :customer_id)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_LINES_FOR_ORDERS_SQL = text("""
    SELECT ol.id, ol.order_id, ol.instrument_id, ol.quantity, ol.unit_price_cents,
           i.name AS instrument_name, i.brand AS instrument_brand
    FROM order_lines ol
    LEFT JOIN instruments i ON i.id = ol.instrument_id
    WHERE ol.order_id = ANY(string_to_array(CAST(:order_ids_csv AS TEXT), ','))
    ORDER BY ol.order_id, ol.id
""")

_TRANSITION_STATUS_SQL = text("""
    UPDATE orders
    SET status = :to_status,
        status_changed_at = NOW(),
        cancel_reason = COALESCE(CAST(:reason AS TEXT), cancel_reason)
    WHERE id = :id AND status = :from_status
    RETURNING id
""")

# Conditional so a concurrent confirmation cannot be deleted out from under
_DELETE_PENDING_ORDER_SQL = text("""
    DELETE FROM orders
    WHERE id = :id AND status = 'PENDING_PAYMENT'
    RETURNING id
""")

_STATS_SQL = text("""
    SELECT status, COUNT(*) AS order_count,
           CAST(COALESCE(SUM(total_cents), 0) AS BIGINT) AS amount
    FROM orders
    GROUP BY status
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    return Order(
        id=row.id,
        customer_id=row.customer_id,
        status=OrderStatus(row.status),
        cancel_reason=row.cancel_reason,
        created_at=row.created_at,
        status_changed_at=row.status_changed_at,
    )


def _row_to_line(row: Any) -> OrderLine:
    return OrderLine(
        id=row.id,
        order_id=row.order_id,
        instrument_id=row.instrument_id,
        quantity=row.quantity,
        unit_price=row.unit_price_cents,
        instrument_name=row.instrument_name,
        instrument_brand=row.instrument_brand,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def customer_exists(self, db: AsyncSession, customer_id: str) -> bool:
        try:
            key = uuid.UUID(str(customer_id))
        except ValueError:
            return False
        result = await db.execute(_CUSTOMER_EXISTS_SQL, {"customer_id": key})
        return result.fetchone() is not None

    async def find_pending_by_customer(
        self, db: AsyncSession, customer_id: str
    ) -> Order | None:
        result = await db.execute(_FIND_PENDING_SQL, {"customer_id": customer_id})
        row = result.fetchone()
        if row is None:
            return None
        return (await self._attach_lines(db, [_row_to_order(row)]))[0]

    async def save(self, db: AsyncSession, order: Order) -> None:
        try:
            await db.execute(
                _INSERT_ORDER_SQL,
                {
                    "id": order.id,
                    "customer_id": order.customer_id,
                    "status": order.status.value,
                    "total_cents": order.total,
                    "created_at": order.created_at,
                    "status_changed_at": order.status_changed_at,
                },
            )
        except IntegrityError as exc:
            if violates_constraint(exc, ONE_PENDING_ORDER_INDEX):
                raise PendingOrderExistsError(order.customer_id) from exc
            raise
        await db.execute(
            _INSERT_LINE_SQL,
            [
                {
                    "id": line.id,
                    "order_id": order.id,
                    "instrument_id": line.instrument_id,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price,
                }
                for line in order.lines
            ],
        )

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        if row is None:
            return None
        return (await self._attach_lines(db, [_row_to_order(row)]))[0]

    async def list_orders(
        self,
        db: AsyncSession,
        customer_id: str | None,
        status: OrderStatus | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "customer_id": customer_id,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        orders = [_row_to_order(row) for row in result.fetchall()]
        return await self._attach_lines(db, orders)

    async def transition_status(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        reason: str | None = None,
    ) -> bool:
        result = await db.execute(
            _TRANSITION_STATUS_SQL,
            {
                "id": order_id,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "reason": reason,
            },
        )
        return result.fetchone() is not None

    async def delete(self, db: AsyncSession, order_id: str) -> bool:
        result = await db.execute(_DELETE_PENDING_ORDER_SQL, {"id": order_id})
        return result.fetchone() is not None

    async def stats(self, db: AsyncSession) -> OrderStats:
        result = await db.execute(_STATS_SQL)
        counts = {s.value: 0 for s in OrderStatus}
        sales_total = 0
        for row in result.fetchall():
            counts[row.status] = row.order_count
            if row.status in {s.value for s in SALES_STATUSES}:
                sales_total += row.amount
        return OrderStats(counts=counts, sales_total=sales_total)

    async def _attach_lines(self, db: AsyncSession, orders: list[Order]) -> list[Order]:
        if not orders:
            return orders
        result = await db.execute(
            _LINES_FOR_ORDERS_SQL,
            {"order_ids_csv": ",".join(o.id for o in orders)},
        )
        by_order: dict[str, list[OrderLine]] = {o.id: [] for o in orders}
        for row in result.fetchall():
            by_order.setdefault(row.order_id, []).append(_row_to_line(row))
        for order in orders:
            order.lines = by_order[order.id]
        return orders
