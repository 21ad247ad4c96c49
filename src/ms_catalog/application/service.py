"""CatalogApplicationService — prices, stock and catalog reads.

reserve_stock / release_stock never commit: they run inside the order
lifecycle's transaction so a failed confirmation rolls every reservation
back. record_price owns its own transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ms_catalog.application.schemas import (
    CategoryResponse,
    InstrumentListResponse,
    InstrumentResponse,
    LowStockResponse,
    PriceRecordResponse,
    RecordPriceResponse,
)
from src.ms_catalog.domain.models import Instrument, PriceRecord
from src.ms_catalog.domain.repository import CatalogRepositoryProtocol
from src.ms_catalog.infrastructure.persistence import CatalogRepository
from src.ms_common.errors import (
    InstrumentNotFoundError,
    InsufficientStockError,
    InvalidPriceError,
    PriceNotFoundError,
)
from src.ms_common.pagination import cursor_decode, cursor_encode

logger = logging.getLogger(__name__)


class CatalogApplicationService:
    def __init__(self, repo: CatalogRepositoryProtocol | None = None) -> None:
        self._repo: CatalogRepositoryProtocol = repo or CatalogRepository()

    # ------------------------------------------------------------------
    # Store operations used by the order lifecycle
    # ------------------------------------------------------------------

    async def find_instrument(self, db: AsyncSession, instrument_id: str) -> Instrument | None:
        return await self._repo.get_instrument(db, instrument_id)

    async def current_price(self, db: AsyncSession, instrument_id: str) -> int:
        """Latest recorded price in cents."""
        record = await self._repo.get_current_price(db, instrument_id)
        if record is None:
            if await self._repo.get_instrument(db, instrument_id) is None:
                raise InstrumentNotFoundError(instrument_id)
            raise PriceNotFoundError(instrument_id)
        return record.price

    async def reserve_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument:
        instrument = await self._repo.reserve_stock(db, instrument_id, quantity)
        if instrument is not None:
            return instrument
        current = await self._repo.get_instrument(db, instrument_id)
        if current is None:
            raise InstrumentNotFoundError(instrument_id)
        raise InsufficientStockError(current.name, current.stock, quantity)

    async def release_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument:
        instrument = await self._repo.release_stock(db, instrument_id, quantity)
        if instrument is None:
            raise InstrumentNotFoundError(instrument_id)
        return instrument

    async def record_price(
        self, db: AsyncSession, instrument_id: str, new_price: int
    ) -> tuple[PriceRecord, bool]:
        """Append a price record unless the change is within one cent.

        Returns (current record, whether a new record was written).
        """
        if new_price <= 0:
            raise InvalidPriceError(new_price)
        try:
            # Row lock serialises concurrent price updates for one instrument
            instrument = await self._repo.get_instrument(db, instrument_id, for_update=True)
            if instrument is None:
                raise InstrumentNotFoundError(instrument_id)
            current = await self._repo.get_current_price(db, instrument_id)
            if current is not None and not current.differs_from(new_price):
                await db.rollback()
                return current, False
            record = await self._repo.insert_price(db, instrument_id, new_price)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Price of %s changed %s -> %d cents",
            instrument_id,
            current.price if current else "none",
            new_price,
        )
        return record, True

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    async def get_instrument(self, db: AsyncSession, instrument_id: str) -> InstrumentResponse:
        instrument = await self._repo.get_instrument(db, instrument_id)
        if instrument is None:
            raise InstrumentNotFoundError(instrument_id)
        price = await self._repo.get_current_price(db, instrument_id)
        return InstrumentResponse.from_domain(instrument, price)

    async def list_instruments(
        self,
        db: AsyncSession,
        category_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> InstrumentListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        instruments = await self._repo.list_instruments(db, category_id, cursor_id, limit + 1)
        has_more = len(instruments) > limit
        page = instruments[:limit]
        items = [
            InstrumentResponse.from_domain(i, await self._repo.get_current_price(db, i.id))
            for i in page
        ]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return InstrumentListResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def price_history(
        self, db: AsyncSession, instrument_id: str
    ) -> list[PriceRecordResponse]:
        if await self._repo.get_instrument(db, instrument_id) is None:
            raise InstrumentNotFoundError(instrument_id)
        records = await self._repo.list_price_history(db, instrument_id)
        return [PriceRecordResponse.from_domain(r) for r in records]

    async def list_low_stock(
        self, db: AsyncSession, threshold: int | None = None
    ) -> LowStockResponse:
        limit = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
        instruments = await self._repo.list_low_stock(db, limit)
        items = [
            InstrumentResponse.from_domain(i, await self._repo.get_current_price(db, i.id))
            for i in instruments
        ]
        return LowStockResponse(threshold=limit, items=items)

    async def list_categories(self, db: AsyncSession) -> list[CategoryResponse]:
        return [CategoryResponse.from_domain(c) for c in await self._repo.list_categories(db)]

    async def record_price_response(
        self, db: AsyncSession, instrument_id: str, new_price: int
    ) -> RecordPriceResponse:
        record, recorded = await self.record_price(db, instrument_id, new_price)
        return RecordPriceResponse(
            recorded=recorded, current=PriceRecordResponse.from_domain(record)
        )
