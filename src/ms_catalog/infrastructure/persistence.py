"""CatalogRepository — raw SQL implementation of CatalogRepositoryProtocol.

Stock only moves through single conditional UPDATE ... RETURNING statements,
so concurrent reservations can never drive stock below zero (the table also
carries CHECK (stock >= 0)). Zero rows back means the condition failed.

Transaction ownership: the CALLER commits or rolls back.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_catalog.domain.models import Category, Instrument, PriceRecord

# ---------------------------------------------------------------------------
# SQL: instruments
# ---------------------------------------------------------------------------

_INSTRUMENT_COLUMNS = """
    i.id, i.name, i.brand, i.stock, i.category_id, c.name AS category_name,
    i.description, i.image_url, i.created_at, i.updated_at
"""

_GET_INSTRUMENT_SQL = text(f"""
    SELECT {_INSTRUMENT_COLUMNS}
    FROM instruments i
    LEFT JOIN categories c ON c.id = i.category_id
    WHERE i.id = :id
""")

_LOCK_INSTRUMENT_SQL = text("""
    SELECT i.id, i.name, i.brand, i.stock, i.category_id, NULL AS category_name,
           i.description, i.image_url, i.created_at, i.updated_at
    FROM instruments i
    WHERE i.id = :id
    FOR UPDATE
""")

_LIST_INSTRUMENTS_SQL = text(f"""
    SELECT {_INSTRUMENT_COLUMNS}
    FROM instruments i
    LEFT JOIN categories c ON c.id = i.category_id
    WHERE (CAST(:category_id AS TEXT) IS NULL OR i.category_id = :category_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR i.id > :cursor_id)
    ORDER BY i.id ASC
    LIMIT :limit
""")

_LIST_LOW_STOCK_SQL = text(f"""
    SELECT {_INSTRUMENT_COLUMNS}
    FROM instruments i
    LEFT JOIN categories c ON c.id = i.category_id
    WHERE i.stock < :threshold
    ORDER BY i.stock ASC, i.id ASC
""")

_RETURNING_INSTRUMENT = """
    RETURNING id, name, brand, stock, category_id, NULL AS category_name,
              description, image_url, created_at, updated_at
"""

_RESERVE_STOCK_SQL = text(f"""
    UPDATE instruments
    SET stock = stock - :quantity,
        updated_at = NOW()
    WHERE id = :id AND stock >= :quantity
    {_RETURNING_INSTRUMENT}
""")

_RELEASE_STOCK_SQL = text(f"""
    UPDATE instruments
    SET stock = stock + :quantity,
        updated_at = NOW()
    WHERE id = :id
    {_RETURNING_INSTRUMENT}
""")

# ---------------------------------------------------------------------------
# SQL: categories / price history
# ---------------------------------------------------------------------------

_LIST_CATEGORIES_SQL = text("SELECT id, name FROM categories ORDER BY name")

_PRICE_COLUMNS = "id, instrument_id, price_cents, effective_from"

_GET_CURRENT_PRICE_SQL = text(f"""
    SELECT {_PRICE_COLUMNS}
    FROM price_history
    WHERE instrument_id = :instrument_id
    ORDER BY effective_from DESC, id DESC
    LIMIT 1
""")

_LIST_PRICE_HISTORY_SQL = text(f"""
    SELECT {_PRICE_COLUMNS}
    FROM price_history
    WHERE instrument_id = :instrument_id
    ORDER BY effective_from DESC, id DESC
""")

_INSERT_PRICE_SQL = text(f"""
    INSERT INTO price_history (instrument_id, price_cents)
    VALUES (:instrument_id, :price)
    RETURNING {_PRICE_COLUMNS}
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_instrument(row: Any) -> Instrument:
    return Instrument(
        id=row.id,
        name=row.name,
        brand=row.brand,
        stock=row.stock,
        category_id=row.category_id,
        category_name=row.category_name,
        description=row.description,
        image_url=row.image_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_price(row: Any) -> PriceRecord:
    return PriceRecord(
        id=row.id,
        instrument_id=row.instrument_id,
        price=row.price_cents,
        effective_from=row.effective_from,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogRepository:
    """Concrete implementation of CatalogRepositoryProtocol using raw SQL."""

    async def get_instrument(
        self, db: AsyncSession, instrument_id: str, for_update: bool = False
    ) -> Instrument | None:
        sql = _LOCK_INSTRUMENT_SQL if for_update else _GET_INSTRUMENT_SQL
        result = await db.execute(sql, {"id": instrument_id})
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def list_instruments(
        self,
        db: AsyncSession,
        category_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Instrument]:
        result = await db.execute(
            _LIST_INSTRUMENTS_SQL,
            {"category_id": category_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_instrument(row) for row in result.fetchall()]

    async def list_low_stock(self, db: AsyncSession, threshold: int) -> list[Instrument]:
        result = await db.execute(_LIST_LOW_STOCK_SQL, {"threshold": threshold})
        return [_row_to_instrument(row) for row in result.fetchall()]

    async def list_categories(self, db: AsyncSession) -> list[Category]:
        result = await db.execute(_LIST_CATEGORIES_SQL)
        return [Category(id=row.id, name=row.name) for row in result.fetchall()]

    async def get_current_price(
        self, db: AsyncSession, instrument_id: str
    ) -> PriceRecord | None:
        result = await db.execute(_GET_CURRENT_PRICE_SQL, {"instrument_id": instrument_id})
        row = result.fetchone()
        return _row_to_price(row) if row else None

    async def list_price_history(
        self, db: AsyncSession, instrument_id: str
    ) -> list[PriceRecord]:
        result = await db.execute(_LIST_PRICE_HISTORY_SQL, {"instrument_id": instrument_id})
        return [_row_to_price(row) for row in result.fetchall()]

    async def insert_price(
        self, db: AsyncSession, instrument_id: str, price: int
    ) -> PriceRecord:
        result = await db.execute(
            _INSERT_PRICE_SQL, {"instrument_id": instrument_id, "price": price}
        )
        return _row_to_price(result.fetchone())

    async def reserve_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument | None:
        result = await db.execute(
            _RESERVE_STOCK_SQL, {"id": instrument_id, "quantity": quantity}
        )
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def release_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument | None:
        result = await db.execute(
            _RELEASE_STOCK_SQL, {"id": instrument_id, "quantity": quantity}
        )
        row = result.fetchone()
        return _row_to_instrument(row) if row else None
