"""004: create orders and order_lines

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(32)     PRIMARY KEY,
            customer_id         VARCHAR(64)     NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING_PAYMENT',
            total_cents         BIGINT          NOT NULL,
            cancel_reason       VARCHAR(255),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            status_changed_at   TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('PENDING_PAYMENT', 'PAID', 'SHIPPED', 'DELIVERED', 'CANCELLED')
            ),
            CONSTRAINT ck_orders_total_non_negative CHECK (total_cents >= 0)
        );
    """)
    # At most one order awaiting payment per customer
    op.execute("""
        CREATE UNIQUE INDEX uq_orders_one_pending_per_customer
            ON orders (customer_id)
            WHERE status = 'PENDING_PAYMENT';
    """)
    op.execute("CREATE INDEX idx_orders_customer ON orders (customer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_status ON orders (status);")
    op.execute("""
        CREATE TRIGGER trg_orders_status_changed_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_touch_status_changed_at();
    """)

    op.execute("""
        CREATE TABLE order_lines (
            id                  VARCHAR(32)     PRIMARY KEY,
            order_id            VARCHAR(32)     NOT NULL REFERENCES orders (id) ON DELETE CASCADE,
            instrument_id       VARCHAR(32)     NOT NULL REFERENCES instruments (id),
            quantity            INTEGER         NOT NULL,
            unit_price_cents    BIGINT          NOT NULL,
            CONSTRAINT ck_order_lines_quantity CHECK (quantity > 0),
            CONSTRAINT ck_order_lines_price CHECK (unit_price_cents > 0)
        );
    """)
    op.execute("CREATE INDEX idx_order_lines_order ON order_lines (order_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_lines CASCADE;")
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
