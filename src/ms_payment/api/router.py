"""ms_payment REST API — initiation, status polling, queries and the gateway webhook."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.database import get_db_session
from src.ms_common.response import ApiResponse, success_response
from src.ms_gateway.api.router import get_request_id
from src.ms_gateway.auth.dependencies import customer_scope, get_current_user
from src.ms_gateway.user.db_models import UserModel
from src.ms_payment.application.schemas import PaymentStatusResponse
from src.ms_payment.application.service import (
    PaymentReconciliationService,
    get_reconciliation_service,
)
from src.ms_payment.application.worker import NotificationWorker, get_notification_worker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

ServiceDep = Annotated[PaymentReconciliationService, Depends(get_reconciliation_service)]


@router.post("/orders/{order_id}")
async def initiate_payment(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    data = await service.initiate_payment(
        db, order_id, str(current_user.id), current_user.email, current_user.full_name
    )
    return success_response(data.model_dump(), get_request_id(request), "Payment initiated")


@router.get("/orders/{order_id}")
async def list_order_payments(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    data = await service.list_payments(db, order_id, customer_scope(current_user))
    return success_response([p.model_dump(mode="json") for p in data], get_request_id(request))


@router.get("/orders/{order_id}/latest")
async def latest_order_payment(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    data = await service.latest_payment(db, order_id, customer_scope(current_user))
    return success_response(data.model_dump(mode="json"), get_request_id(request))


@router.get("/orders/{order_id}/approved")
async def order_has_approved_payment(
    order_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    data = await service.has_approved_payment(db, order_id, customer_scope(current_user))
    return success_response(data.model_dump(), get_request_id(request))


@router.get("/status/{intent_reference}")
async def payment_status(
    intent_reference: str,
    _user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    status = await service.resolve_status(db, intent_reference)
    data = PaymentStatusResponse.of(intent_reference, status)
    return success_response(data.model_dump(), get_request_id(request))


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    worker: Annotated[NotificationWorker, Depends(get_notification_worker)],
    topic: str | None = Query(None),
    notification_type: str | None = Query(None, alias="type"),
    notification_id: str | None = Query(None, alias="id"),
    data_id: str | None = Query(None, alias="data.id"),
) -> ApiResponse:
    """Gateway push. Always acknowledged; processing happens on the worker."""
    body = await _json_body(request)
    data = body.get("data")
    kind = topic or notification_type or body.get("type") or body.get("topic")
    transaction_id = (
        notification_id
        or data_id
        or (data.get("id") if isinstance(data, dict) else None)
    )

    queued = False
    if kind == "payment" and transaction_id:
        queued = worker.submit(str(transaction_id))
    else:
        logger.info("Ignoring webhook type=%s id=%s", kind, transaction_id)
    return success_response({"received": True, "queued": queued}, get_request_id(request))


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: ServiceDep,
    request: Request,
) -> ApiResponse:
    data = await service.get_payment(db, payment_id, customer_scope(current_user))
    return success_response(data.model_dump(mode="json"), get_request_id(request))


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
