"""Persistence contract for the catalog: instruments, categories, price ledger, stock."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_catalog.domain.models import Category, Instrument, PriceRecord


class CatalogRepositoryProtocol(Protocol):
    async def get_instrument(
        self, db: AsyncSession, instrument_id: str, for_update: bool = False
    ) -> Instrument | None: ...

    async def list_instruments(
        self,
        db: AsyncSession,
        category_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Instrument]: ...

    async def list_low_stock(
        self, db: AsyncSession, threshold: int
    ) -> list[Instrument]: ...

    async def list_categories(self, db: AsyncSession) -> list[Category]: ...

    async def get_current_price(
        self, db: AsyncSession, instrument_id: str
    ) -> PriceRecord | None: ...

    async def list_price_history(
        self, db: AsyncSession, instrument_id: str
    ) -> list[PriceRecord]: ...

    async def insert_price(
        self, db: AsyncSession, instrument_id: str, price: int
    ) -> PriceRecord: ...

    async def reserve_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument | None:
        """Atomically take quantity; None if the instrument lacks that much stock."""
        ...

    async def release_stock(
        self, db: AsyncSession, instrument_id: str, quantity: int
    ) -> Instrument | None:
        """Atomically give quantity back; None if the instrument does not exist."""
        ...
