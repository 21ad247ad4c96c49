"""ms_order REST API — customers manage their own orders, admins all of them."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.database import get_db_session
from src.ms_common.enums import OrderStatus
from src.ms_common.response import ApiResponse, success_response
from src.ms_gateway.api.router import get_request_id
from src.ms_gateway.auth.dependencies import customer_scope, get_current_user, require_admin
from src.ms_gateway.user.db_models import UserModel
from src.ms_order.application.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    UpdateStatusRequest,
)
from src.ms_order.application.service import OrderApplicationService

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderApplicationService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    body: CreateOrderRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    lines = [(line.instrument_id, line.quantity) for line in body.lines]
    data = await _service.create_order(db, str(current_user.id), lines)
    return success_response(data.model_dump(mode="json"), get_request_id(request), "Order created")


@router.get("")
async def list_orders(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    order_status: OrderStatus | None = Query(None, alias="status"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_orders(
        db, customer_scope(current_user), order_status, cursor, limit
    )
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.get("/pending")
async def get_pending_order(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_pending_order(db, str(current_user.id))
    return success_response(
        data.model_dump(mode="json") if data else None, get_request_id(request)
    )


@router.get("/stats")
async def get_stats(
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_stats(db)
    return success_response(data.model_dump(), get_request_id(request))


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_order(db, order_id, customer_scope(current_user))
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: CancelOrderRequest | None = None,
) -> ApiResponse:
    reason = body.reason if body else None
    data = await _service.cancel_order(db, order_id, reason, customer_scope(current_user))
    return success_response(data.model_dump(mode="json"), get_request_id(request), "Order cancelled")


@router.patch("/{order_id}/status")
async def update_status(
    order_id: str,
    body: UpdateStatusRequest,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_status(db, order_id, body.status)
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.delete_order(db, order_id, customer_scope(current_user))
    return success_response({"order_id": order_id}, get_request_id(request), "Order deleted")
