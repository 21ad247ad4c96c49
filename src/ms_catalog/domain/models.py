"""Catalog domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.ms_common.cents import prices_differ


@dataclass
class Category:
    id: str
    name: str


@dataclass
class Instrument:
    id: str
    name: str
    brand: str
    stock: int
    category_id: str | None = None
    category_name: str | None = None
    description: str | None = None
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def has_stock_for(self, quantity: int) -> bool:
        return self.stock >= quantity


@dataclass
class PriceRecord:
    """One entry in an instrument's append-only price ledger."""

    id: int
    instrument_id: str
    price: int  # cents
    effective_from: datetime

    def differs_from(self, new_price: int) -> bool:
        return prices_differ(self.price, new_price)
