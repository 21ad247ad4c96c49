"""PaymentReconciliationService — payment intents and status reconciliation.

Three ways a payment's status moves:

  initiate_payment     creates the pending Payment and the gateway intent
  ingest_notification  webhook push (via NotificationWorker), never raises
  resolve_status       client polling after the gateway redirect

Pushes and polls can arrive duplicated, late or at the same time. Payment
rows are updated by compare-and-set on the previous status and the order is
confirmed only by the call that moved a payment into approved, so a
transition is applied once however many observers see it.

No DB transaction is ever held open across a gateway call.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ms_common.cents import cents_to_display
from src.ms_common.enums import PaymentStatus
from src.ms_common.errors import (
    AppError,
    GatewayError,
    InternalError,
    OrderNotPayableError,
    OrderNotPendingError,
    PaymentNotFoundError,
)
from src.ms_common.id_generator import generate_id
from src.ms_order.application.service import OrderApplicationService
from src.ms_order.domain.models import Order
from src.ms_payment.application.schemas import (
    ApprovedPaymentResponse,
    PaymentInitResponse,
    PaymentResponse,
)
from src.ms_payment.domain.cache import PaymentStatusCache
from src.ms_payment.domain.models import (
    GatewayTransaction,
    IntentItem,
    Payer,
    Payment,
    PaymentIntentRequest,
    RedirectUrls,
)
from src.ms_payment.domain.repository import PaymentGatewayProtocol, PaymentRepositoryProtocol
from src.ms_payment.infrastructure.gateway_client import HttpPaymentGateway
from src.ms_payment.infrastructure.persistence import PaymentRepository

logger = logging.getLogger(__name__)

MAX_ITEM_TITLE = 60


def item_title(name: str | None) -> str:
    """Gateway item titles are capped at 60 characters: 57 + '...'."""
    title = (name or "").strip() or "Instrument"
    if len(title) > MAX_ITEM_TITLE:
        return title[: MAX_ITEM_TITLE - 3] + "..."
    return title


def with_order_id(url: str, order_id: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}order_id={order_id}"


def order_id_from_reference(reference: str | None) -> str | None:
    """External references are our order ids: all-digit strings."""
    if reference is None:
        return None
    value = reference.strip()
    return value if value.isdigit() else None


def latest_transaction(transactions: list[GatewayTransaction]) -> GatewayTransaction:
    dated = [t for t in transactions if t.date_created is not None]
    if dated:
        return max(dated, key=lambda t: t.date_created)  # type: ignore[arg-type,return-value]
    return transactions[0]


class PaymentReconciliationService:
    def __init__(
        self,
        repo: PaymentRepositoryProtocol | None = None,
        orders: OrderApplicationService | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        cache: PaymentStatusCache | None = None,
        hot_window_seconds: float | None = None,
    ) -> None:
        self._repo: PaymentRepositoryProtocol = repo or PaymentRepository()
        self._orders = orders or OrderApplicationService()
        self._gateway: PaymentGatewayProtocol = gateway or HttpPaymentGateway()
        self._cache = cache or PaymentStatusCache(settings.PAYMENT_STATUS_CACHE_TTL_SECONDS)
        self._hot_window = (
            settings.PAYMENT_STATUS_HOT_WINDOW_SECONDS
            if hot_window_seconds is None
            else hot_window_seconds
        )

    @property
    def gateway(self) -> PaymentGatewayProtocol:
        return self._gateway

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    async def initiate_payment(
        self,
        db: AsyncSession,
        order_id: str,
        customer_id: str | None,
        payer_email: str,
        payer_name: str | None = None,
    ) -> PaymentInitResponse:
        """Create a pending Payment and a gateway intent for a PENDING_PAYMENT order."""
        redirect_urls = self._redirect_urls(order_id)
        try:
            order = await self._payable_order(db, order_id, customer_id)
            payment = Payment(
                id=generate_id(),
                order_id=order_id,
                amount=order.total,
                status=PaymentStatus.PENDING,
                description=f"Payment for order #{order_id}",
            )
            await self._repo.insert(db, payment)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        request = self._intent_request(order, redirect_urls, payer_email, payer_name)
        try:
            intent = await self._gateway.create_intent(request)
        except GatewayError:
            await self._abandon(db, payment)
            raise

        try:
            await self._repo.set_intent_reference(db, payment.id, intent.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        redirect_url = intent.redirect_url
        if settings.PAYMENT_SANDBOX_MODE and intent.sandbox_redirect_url:
            redirect_url = intent.sandbox_redirect_url
        logger.info(
            "Payment %s initiated for order %s (%d cents), intent %s",
            payment.id, order_id, payment.amount, intent.id,
        )
        return PaymentInitResponse(
            payment_id=payment.id,
            order_id=order_id,
            intent_reference=intent.id,
            redirect_url=redirect_url,
            amount_cents=payment.amount,
            amount_display=cents_to_display(payment.amount),
        )

    async def _payable_order(
        self, db: AsyncSession, order_id: str, customer_id: str | None
    ) -> Order:
        order = await self._orders.find_order(db, order_id)
        if order is None or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotPayableError(order_id, "order not found")
        if not order.is_pending_payment:
            raise OrderNotPayableError(order_id, f"order is {order.status.value}")
        if not order.lines:
            raise OrderNotPayableError(order_id, "order has no lines")
        if order.total <= 0:
            raise OrderNotPayableError(order_id, "order total must be positive")
        if await self._repo.has_approved(db, order_id):
            raise OrderNotPayableError(order_id, "order already has an approved payment")
        return order

    def _redirect_urls(self, order_id: str) -> RedirectUrls:
        urls = (
            settings.PAYMENT_SUCCESS_URL,
            settings.PAYMENT_FAILURE_URL,
            settings.PAYMENT_PENDING_URL,
        )
        if not all(urls):
            raise InternalError("Payment redirect URLs are not configured")
        success, failure, pending = (with_order_id(u, order_id) for u in urls)
        return RedirectUrls(success=success, failure=failure, pending=pending)

    def _intent_request(
        self,
        order: Order,
        redirect_urls: RedirectUrls,
        payer_email: str,
        payer_name: str | None,
    ) -> PaymentIntentRequest:
        items = [
            IntentItem(
                title=item_title(line.instrument_name),
                description=line.instrument_brand,
                quantity=line.quantity,
                unit_price=line.unit_price,
                currency=settings.PAYMENT_CURRENCY,
            )
            for line in order.lines
        ]
        return PaymentIntentRequest(
            items=items,
            payer=Payer(email=payer_email, name=payer_name),
            redirect_urls=redirect_urls,
            external_reference=order.id,
            notification_url=settings.PAYMENT_NOTIFICATION_URL,
            statement_descriptor=settings.PAYMENT_STATEMENT_DESCRIPTOR,
            metadata={"order_id": order.id},
        )

    async def _abandon(self, db: AsyncSession, payment: Payment) -> None:
        """Cancel a payment whose intent was never created so it cannot shadow a retry."""
        try:
            await self._repo.update_status(
                db, payment.id, PaymentStatus.PENDING, PaymentStatus.CANCELLED
            )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Could not cancel abandoned payment %s", payment.id)

    # ------------------------------------------------------------------
    # Webhook ingestion
    # ------------------------------------------------------------------

    async def ingest_notification(self, db: AsyncSession, transaction_id: str) -> None:
        """Apply a gateway push. Failures are logged, never raised to the provider."""
        try:
            await self._ingest(db, transaction_id)
        except Exception:
            logger.exception("Failed to ingest payment notification %s", transaction_id)
            await db.rollback()

    async def _ingest(self, db: AsyncSession, transaction_id: str) -> None:
        tx = await self._gateway.get_transaction(transaction_id)
        if tx is None:
            logger.warning("Gateway has no transaction %s, notification ignored", transaction_id)
            return

        order_id = order_id_from_reference(tx.external_reference)
        if order_id is None:
            logger.warning(
                "Transaction %s carries no usable order reference (%r)",
                transaction_id, tx.external_reference,
            )
            return

        payment = await self._repo.find_open_for_order(db, order_id)
        if payment is None:
            logger.info(
                "No open payment for order %s, transaction %s already applied or unknown",
                order_id, transaction_id,
            )
            return

        previous = payment.status
        status = await self._apply_transaction(db, payment, tx)
        if status == PaymentStatus.APPROVED:
            logger.info("Order %s payment approved (transaction %s)", order_id, tx.id)
        elif status.is_final:
            logger.info(
                "Payment for order %s %s, order stays PENDING_PAYMENT", order_id, status.value
            )
        else:
            logger.info(
                "Payment for order %s is %s (was %s)", order_id, status.value, previous.value
            )

    # ------------------------------------------------------------------
    # Status resolution
    # ------------------------------------------------------------------

    async def resolve_status(self, db: AsyncSession, intent_reference: str) -> PaymentStatus:
        """Best current status of the payment behind an intent reference.

        Cached approved answers forever (within TTL), any cached answer within
        the hot window is served as is, then store, then gateway. Gateway or
        store failures degrade to the stored status.
        """
        cached = self._cache.get_status(intent_reference)
        if cached is not None:
            if cached.status == PaymentStatus.APPROVED:
                return cached.status
            if self._cache.age(cached) < self._hot_window:
                return cached.status

        payment = await self._repo.get_by_intent_reference(db, intent_reference)
        if payment is None:
            raise PaymentNotFoundError(intent_reference)

        try:
            status = await self._reconcile(db, payment)
        except Exception:
            logger.warning(
                "Reconciliation of %s failed, serving stored status %s",
                intent_reference, payment.status.value, exc_info=True,
            )
            await db.rollback()
            return payment.status

        self._cache.put_status(intent_reference, status)
        return status

    async def _reconcile(self, db: AsyncSession, payment: Payment) -> PaymentStatus:
        if payment.status == PaymentStatus.APPROVED:
            return payment.status

        # Close the read transaction before calling out to the gateway
        await db.commit()

        reference = payment.intent_reference or ""
        transaction_id = (
            self._cache.get_transaction_id(reference) or payment.external_transaction_id
        )
        if transaction_id:
            tx = await self._gateway.get_transaction(transaction_id)
            if tx is not None:
                return await self._apply_transaction(db, payment, tx)

        transactions = await self._gateway.search_transactions(payment.order_id)
        if not transactions:
            return payment.status
        return await self._apply_transaction(db, payment, latest_transaction(transactions))

    # ------------------------------------------------------------------
    # Shared transition path
    # ------------------------------------------------------------------

    async def _apply_transaction(
        self, db: AsyncSession, payment: Payment, tx: GatewayTransaction
    ) -> PaymentStatus:
        new_status = PaymentStatus.from_gateway(tx.status)
        if new_status is None:
            logger.warning(
                "Unknown gateway status %r for transaction %s, ignored", tx.status, tx.id
            )
            return payment.status

        if payment.intent_reference:
            self._cache.put_transaction_id(payment.intent_reference, tx.id)
        if new_status == payment.status and payment.external_transaction_id == tx.id:
            if payment.intent_reference:
                self._cache.put_status(payment.intent_reference, new_status)
            return new_status

        try:
            updated = await self._repo.update_status(
                db, payment.id, payment.status, new_status, tx.id, tx.payment_method
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if updated is None:
            current = await self._repo.get_by_id(db, payment.id)
            logger.info(
                "Payment %s changed concurrently, now %s",
                payment.id, current.status.value if current else "missing",
            )
            return current.status if current else payment.status

        logger.info(
            "Payment %s %s -> %s (transaction %s)",
            payment.id, payment.status.value, updated.status.value, tx.id,
        )
        if updated.intent_reference:
            self._cache.put_status(updated.intent_reference, updated.status)
        if updated.status == PaymentStatus.APPROVED and payment.status != PaymentStatus.APPROVED:
            await self._confirm_order(db, updated.order_id)
        return updated.status

    async def _confirm_order(self, db: AsyncSession, order_id: str) -> None:
        try:
            await self._orders.confirm_payment(db, order_id)
        except OrderNotPendingError as exc:
            logger.info("Order %s already handled (%s)", order_id, exc.status)
        except AppError as exc:
            # Money taken but stock or order gone: needs a human
            logger.error(
                "Payment approved for order %s but confirmation failed: %s",
                order_id, exc.message,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_payments(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> list[PaymentResponse]:
        if customer_id is not None:
            await self._orders.load_order(db, order_id, customer_id)
        payments = await self._repo.list_by_order(db, order_id)
        return [PaymentResponse.from_domain(p) for p in payments]

    async def latest_payment(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> PaymentResponse:
        payments = await self.list_payments(db, order_id, customer_id)
        if not payments:
            raise PaymentNotFoundError(f"order {order_id}")
        return payments[0]

    async def get_payment(
        self, db: AsyncSession, payment_id: str, customer_id: str | None = None
    ) -> PaymentResponse:
        payment = await self._repo.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        if customer_id is not None:
            order = await self._orders.find_order(db, payment.order_id)
            if order is None or order.customer_id != customer_id:
                raise PaymentNotFoundError(payment_id)
        return PaymentResponse.from_domain(payment)

    async def has_approved_payment(
        self, db: AsyncSession, order_id: str, customer_id: str | None = None
    ) -> ApprovedPaymentResponse:
        if customer_id is not None:
            await self._orders.load_order(db, order_id, customer_id)
        return ApprovedPaymentResponse(
            order_id=order_id,
            has_approved_payment=await self._repo.has_approved(db, order_id),
        )


_service: PaymentReconciliationService | None = None


def get_reconciliation_service() -> PaymentReconciliationService:
    """Process-wide engine: the status cache must be shared by API and worker."""
    global _service  # noqa: PLW0603
    if _service is None:
        _service = PaymentReconciliationService()
    return _service


async def close_reconciliation_service() -> None:
    global _service  # noqa: PLW0603
    if _service is not None:
        gateway = _service.gateway
        if isinstance(gateway, HttpPaymentGateway):
            await gateway.aclose()
        _service = None
