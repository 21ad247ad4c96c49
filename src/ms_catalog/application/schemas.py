"""Pydantic schemas for the catalog API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.ms_catalog.domain.models import Category, Instrument, PriceRecord
from src.ms_common.cents import cents_to_display


class RecordPriceRequest(BaseModel):
    price_cents: int = Field(..., gt=0, description="New unit price in cents")


class CategoryResponse(BaseModel):
    id: str
    name: str

    @classmethod
    def from_domain(cls, category: Category) -> "CategoryResponse":
        return cls(id=category.id, name=category.name)


class PriceRecordResponse(BaseModel):
    id: int
    instrument_id: str
    price_cents: int
    price_display: str
    effective_from: datetime

    @classmethod
    def from_domain(cls, record: PriceRecord) -> "PriceRecordResponse":
        return cls(
            id=record.id,
            instrument_id=record.instrument_id,
            price_cents=record.price,
            price_display=cents_to_display(record.price),
            effective_from=record.effective_from,
        )


class RecordPriceResponse(BaseModel):
    recorded: bool  # False when the change was within tolerance
    current: PriceRecordResponse


class InstrumentResponse(BaseModel):
    id: str
    name: str
    brand: str
    stock: int
    category_id: str | None
    category_name: str | None
    description: str | None
    image_url: str | None
    price_cents: int | None
    price_display: str | None

    @classmethod
    def from_domain(
        cls, instrument: Instrument, price: PriceRecord | None
    ) -> "InstrumentResponse":
        return cls(
            id=instrument.id,
            name=instrument.name,
            brand=instrument.brand,
            stock=instrument.stock,
            category_id=instrument.category_id,
            category_name=instrument.category_name,
            description=instrument.description,
            image_url=instrument.image_url,
            price_cents=price.price if price else None,
            price_display=cents_to_display(price.price) if price else None,
        )


class InstrumentListResponse(BaseModel):
    items: list[InstrumentResponse]
    next_cursor: str | None
    has_more: bool


class LowStockResponse(BaseModel):
    threshold: int
    items: list[InstrumentResponse]
