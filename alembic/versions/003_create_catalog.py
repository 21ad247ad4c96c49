"""003: create categories, instruments and price_history

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE categories (
            id              VARCHAR(32)     PRIMARY KEY,
            name            VARCHAR(128)    NOT NULL,
            CONSTRAINT uq_categories_name UNIQUE (name)
        );
    """)
    op.execute("""
        CREATE TABLE instruments (
            id              VARCHAR(32)     PRIMARY KEY,
            name            VARCHAR(255)    NOT NULL,
            brand           VARCHAR(128)    NOT NULL,
            stock           INTEGER         NOT NULL DEFAULT 0,
            category_id     VARCHAR(32)     REFERENCES categories (id),
            description     TEXT,
            image_url       VARCHAR(512),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_instruments_stock_non_negative CHECK (stock >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_instruments_category ON instruments (category_id);")
    op.execute("CREATE INDEX idx_instruments_stock ON instruments (stock);")
    op.execute("""
        CREATE TRIGGER trg_instruments_updated_at
            BEFORE UPDATE ON instruments
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    # Append-only: the current price is the latest effective_from
    op.execute("""
        CREATE TABLE price_history (
            id              BIGSERIAL       PRIMARY KEY,
            instrument_id   VARCHAR(32)     NOT NULL REFERENCES instruments (id),
            price_cents     BIGINT          NOT NULL,
            effective_from  TIMESTAMPTZ     NOT NULL DEFAULT clock_timestamp(),
            CONSTRAINT ck_price_history_positive CHECK (price_cents > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_price_history_current
            ON price_history (instrument_id, effective_from DESC, id DESC);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_history CASCADE;")
    op.execute("DROP TABLE IF EXISTS instruments CASCADE;")
    op.execute("DROP TABLE IF EXISTS categories CASCADE;")
