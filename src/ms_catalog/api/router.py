"""ms_catalog REST API — public reads, admin-only price and stock views."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_catalog.application.schemas import RecordPriceRequest
from src.ms_catalog.application.service import CatalogApplicationService
from src.ms_common.database import get_db_session
from src.ms_common.response import ApiResponse, success_response
from src.ms_gateway.api.router import get_request_id
from src.ms_gateway.auth.dependencies import require_admin
from src.ms_gateway.user.db_models import UserModel

router = APIRouter(prefix="/instruments", tags=["catalog"])

_service = CatalogApplicationService()


@router.get("")
async def list_instruments(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    category_id: str | None = Query(None),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_instruments(db, category_id, cursor, limit)
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.get("/categories")
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_categories(db)
    return success_response([c.model_dump() for c in data], get_request_id(request))


@router.get("/low-stock")
async def list_low_stock(
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    threshold: int | None = Query(None, ge=1, description="Defaults to LOW_STOCK_THRESHOLD"),
) -> ApiResponse:
    data = await _service.list_low_stock(db, threshold)
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.get("/{instrument_id}")
async def get_instrument(
    instrument_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_instrument(db, instrument_id)
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.get("/{instrument_id}/prices")
async def get_price_history(
    instrument_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.price_history(db, instrument_id)
    return success_response([p.model_dump(mode="json") for p in data], get_request_id(request))


@router.post("/{instrument_id}/prices")
async def record_price(
    instrument_id: str,
    body: RecordPriceRequest,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.record_price_response(db, instrument_id, body.price_cents)
    message = "Price recorded" if data.recorded else "Price unchanged"
    return success_response(data.model_dump(mode="json"), get_request_id(request), message)
