"""005: create payments

Revision ID: 005
Revises: 004
Create Date: 2026-10-19

payments.order_id deliberately has no foreign key: payment records are kept
when an unpaid order is deleted.
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payments (
            id                      VARCHAR(32)     PRIMARY KEY,
            order_id                VARCHAR(32)     NOT NULL,
            amount_cents            BIGINT          NOT NULL,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'pending',
            intent_reference        VARCHAR(128),
            external_transaction_id VARCHAR(64),
            payment_method          VARCHAR(64),
            description             VARCHAR(255),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_intent_reference UNIQUE (intent_reference),
            CONSTRAINT ck_payments_status CHECK (
                status IN ('pending', 'in_process', 'approved', 'rejected', 'cancelled')
            ),
            CONSTRAINT ck_payments_amount_positive CHECK (amount_cents > 0)
        );
    """)
    op.execute("CREATE INDEX idx_payments_order_status ON payments (order_id, status);")
    op.execute("""
        CREATE TRIGGER trg_payments_updated_at
            BEFORE UPDATE ON payments
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
