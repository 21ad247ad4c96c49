"""PaymentRepository — raw SQL persistence implementation.

Status updates are compare-and-set on the previous status, so when a webhook
and a polling request observe the same gateway transition only one of them
wins the write (and only the winner confirms the order).

Transaction ownership: the CALLER commits or rolls back.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.enums import PaymentStatus
from src.ms_payment.domain.models import Payment

_PAYMENT_COLUMNS = """
    id, order_id, amount_cents, status, intent_reference, external_transaction_id,
    payment_method, description, created_at, updated_at
"""

_INSERT_PAYMENT_SQL = text("""
    INSERT INTO payments (id, order_id, amount_cents, status, description)
    VALUES (:id, :order_id, :amount_cents, :status, :description)
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS} FROM payments WHERE id = :id
""")

_GET_BY_INTENT_REFERENCE_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS} FROM payments WHERE intent_reference = :intent_reference
""")

_LIST_BY_ORDER_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS}
    FROM payments
    WHERE order_id = :order_id
    ORDER BY created_at DESC, id DESC
""")

_FIND_OPEN_FOR_ORDER_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS}
    FROM payments
    WHERE order_id = :order_id AND status IN ('pending', 'in_process')
    ORDER BY created_at DESC, id DESC
    LIMIT 1
""")

_HAS_APPROVED_SQL = text("""
    SELECT 1 FROM payments
    WHERE order_id = :order_id AND status = 'approved'
    LIMIT 1
""")

_SET_INTENT_REFERENCE_SQL = text("""
    UPDATE payments
    SET intent_reference = :intent_reference
    WHERE id = :id
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE payments
    SET status = :new_status,
        external_transaction_id = COALESCE(CAST(:transaction_id AS TEXT), external_transaction_id),
        payment_method = COALESCE(CAST(:payment_method AS TEXT), payment_method)
    WHERE id = :id AND status = :expected_status
    RETURNING {_PAYMENT_COLUMNS}
""")


def _row_to_payment(row: Any) -> Payment:
    return Payment(
        id=row.id,
        order_id=row.order_id,
        amount=row.amount_cents,
        status=PaymentStatus(row.status),
        intent_reference=row.intent_reference,
        external_transaction_id=row.external_transaction_id,
        payment_method=row.payment_method,
        description=row.description,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PaymentRepository:
    """Concrete implementation of PaymentRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, payment: Payment) -> None:
        await db.execute(
            _INSERT_PAYMENT_SQL,
            {
                "id": payment.id,
                "order_id": payment.order_id,
                "amount_cents": payment.amount,
                "status": payment.status.value,
                "description": payment.description,
            },
        )

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": payment_id})
        row = result.fetchone()
        return _row_to_payment(row) if row else None

    async def get_by_intent_reference(
        self, db: AsyncSession, intent_reference: str
    ) -> Payment | None:
        result = await db.execute(
            _GET_BY_INTENT_REFERENCE_SQL, {"intent_reference": intent_reference}
        )
        row = result.fetchone()
        return _row_to_payment(row) if row else None

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[Payment]:
        result = await db.execute(_LIST_BY_ORDER_SQL, {"order_id": order_id})
        return [_row_to_payment(row) for row in result.fetchall()]

    async def find_open_for_order(
        self, db: AsyncSession, order_id: str
    ) -> Payment | None:
        result = await db.execute(_FIND_OPEN_FOR_ORDER_SQL, {"order_id": order_id})
        row = result.fetchone()
        return _row_to_payment(row) if row else None

    async def has_approved(self, db: AsyncSession, order_id: str) -> bool:
        result = await db.execute(_HAS_APPROVED_SQL, {"order_id": order_id})
        return result.fetchone() is not None

    async def set_intent_reference(
        self, db: AsyncSession, payment_id: str, intent_reference: str
    ) -> None:
        await db.execute(
            _SET_INTENT_REFERENCE_SQL,
            {"id": payment_id, "intent_reference": intent_reference},
        )

    async def update_status(
        self,
        db: AsyncSession,
        payment_id: str,
        expected_status: PaymentStatus,
        new_status: PaymentStatus,
        transaction_id: str | None = None,
        payment_method: str | None = None,
    ) -> Payment | None:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {
                "id": payment_id,
                "expected_status": expected_status.value,
                "new_status": new_status.value,
                "transaction_id": transaction_id,
                "payment_method": payment_method,
            },
        )
        row = result.fetchone()
        return _row_to_payment(row) if row else None
