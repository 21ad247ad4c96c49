"""HTTP client for a MercadoPago-style payment gateway.

Endpoints used:
    POST /checkout/preferences          create a payment intent ("preference")
    GET  /v1/payments/{id}              one transaction
    GET  /v1/payments/search            transactions by external_reference

Amounts cross the wire in currency units and are converted to/from cents
here; nothing outside this module sees the provider's JSON.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.ms_common.cents import amount_to_cents, cents_to_amount
from src.ms_common.datetime_utils import parse_iso_datetime
from src.ms_common.errors import GatewayError
from src.ms_payment.domain.models import (
    GatewayTransaction,
    PaymentIntent,
    PaymentIntentRequest,
)

logger = logging.getLogger(__name__)


def _intent_payload(request: PaymentIntentRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "items": [
            {
                "title": item.title,
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": float(cents_to_amount(item.unit_price)),
                "currency_id": item.currency,
            }
            for item in request.items
        ],
        "payer": {"email": request.payer.email},
        "back_urls": {
            "success": request.redirect_urls.success,
            "failure": request.redirect_urls.failure,
            "pending": request.redirect_urls.pending,
        },
        "auto_return": "approved",
        "external_reference": request.external_reference,
    }
    if request.payer.name:
        payload["payer"]["name"] = request.payer.name
    if request.notification_url:
        payload["notification_url"] = request.notification_url
    if request.statement_descriptor:
        payload["statement_descriptor"] = request.statement_descriptor
    if request.metadata:
        payload["metadata"] = request.metadata
    return payload


def _parse_transaction(data: Any) -> GatewayTransaction:
    if not isinstance(data, dict) or data.get("id") in (None, ""):
        raise GatewayError("transaction payload without id")
    amount = data.get("transaction_amount")
    reference = data.get("external_reference")
    try:
        cents = amount_to_cents(amount) if amount is not None else None
    except (ArithmeticError, ValueError, TypeError) as e:
        raise GatewayError(f"unparseable transaction_amount {amount!r}") from e
    return GatewayTransaction(
        id=str(data["id"]),
        status=str(data.get("status") or ""),
        external_reference=str(reference) if reference not in (None, "") else None,
        amount=cents,
        status_detail=data.get("status_detail"),
        payment_method=data.get("payment_method_id"),
        date_created=parse_iso_datetime(data.get("date_created")),
    )


class HttpPaymentGateway:
    """PaymentGatewayProtocol over httpx.AsyncClient.

    Pass `client` to share a pool or to inject a mock transport; otherwise a
    client is created from settings and closed by `aclose()`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        access_token: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        token = settings.PAYMENT_GATEWAY_ACCESS_TOKEN if access_token is None else access_token
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.PAYMENT_GATEWAY_BASE_URL,
            timeout=timeout_seconds or settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        )
        self._headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_intent(self, request: PaymentIntentRequest) -> PaymentIntent:
        data = await self._request(
            "POST", "/checkout/preferences", json=_intent_payload(request)
        )
        if not data or not data.get("id") or not data.get("init_point"):
            raise GatewayError("intent response missing id or init_point")
        logger.info(
            "Created payment intent %s for reference %s",
            data["id"], request.external_reference,
        )
        return PaymentIntent(
            id=str(data["id"]),
            redirect_url=data["init_point"],
            sandbox_redirect_url=data.get("sandbox_init_point"),
        )

    async def get_transaction(self, transaction_id: str) -> GatewayTransaction | None:
        data = await self._request("GET", f"/v1/payments/{transaction_id}", allow_404=True)
        return _parse_transaction(data) if data else None

    async def search_transactions(self, external_reference: str) -> list[GatewayTransaction]:
        data = await self._request(
            "GET",
            "/v1/payments/search",
            params={
                "external_reference": external_reference,
                "sort": "date_created",
                "criteria": "desc",
            },
        )
        results = (data or {}).get("results") or []
        if not isinstance(results, list):
            raise GatewayError("search results are not a list")
        return [
            _parse_transaction(item)
            for item in results
            if isinstance(item, dict) and item.get("id") is not None
        ]

    async def _request(
        self,
        method: str,
        path: str,
        allow_404: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any] | None:
        try:
            response = await self._client.request(method, path, headers=self._headers, **kwargs)
            if allow_404 and response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise GatewayError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise GatewayError(f"invalid JSON from gateway: {e}") from e
        if not isinstance(data, dict):
            raise GatewayError(f"unexpected gateway payload: {type(data).__name__}")
        return data
