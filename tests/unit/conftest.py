"""In-memory stand-ins for the repositories, the gateway and the clock.

FakeStore behaves like one database with serialised transactions: commit()
snapshots the working state and rollback() restores the last snapshot, so
services can be tested for all-or-nothing behaviour without PostgreSQL.
Repositories always hand out copies, like rows read from a real database.
"""

import copy
from datetime import UTC, datetime, timedelta

import pytest

from src.ms_catalog.application.service import CatalogApplicationService
from src.ms_catalog.domain.models import Category, Instrument, PriceRecord
from src.ms_common.enums import SALES_STATUSES, OrderStatus, PaymentStatus
from src.ms_common.errors import GatewayError, PendingOrderExistsError
from src.ms_order.application.service import OrderApplicationService
from src.ms_order.domain.models import Order, OrderStats
from src.ms_payment.application.service import PaymentReconciliationService
from src.ms_payment.domain.cache import PaymentStatusCache
from src.ms_payment.domain.models import (
    GatewayTransaction,
    Payment,
    PaymentIntent,
    PaymentIntentRequest,
)

CUSTOMER_ID = "6f1c2b7e-0d4a-4c55-9a57-1f0e5d3a9b01"
OTHER_CUSTOMER_ID = "0b9e4d2c-7a61-4f3e-8c2d-5e6f7a8b9c02"


class FakeStore:
    def __init__(self) -> None:
        self.customers: set[str] = set()
        self.categories: dict[str, Category] = {}
        self.instruments: dict[str, Instrument] = {}
        self.prices: list[PriceRecord] = []
        self.orders: dict[str, Order] = {}
        self.payments: dict[str, Payment] = {}
        self._snapshot = self._state()

    def _state(self) -> tuple:
        return copy.deepcopy((self.instruments, self.prices, self.orders, self.payments))

    def commit(self) -> None:
        self._snapshot = self._state()

    def rollback(self) -> None:
        self.instruments, self.prices, self.orders, self.payments = copy.deepcopy(
            self._snapshot
        )

    def add_instrument(
        self,
        instrument_id: str,
        name: str,
        stock: int,
        price: int | None,
        brand: str = "Fender",
        category_id: str | None = None,
    ) -> None:
        self.instruments[instrument_id] = Instrument(
            id=instrument_id, name=name, brand=brand, stock=stock, category_id=category_id
        )
        if price is not None:
            self.prices.append(
                PriceRecord(
                    id=len(self.prices) + 1,
                    instrument_id=instrument_id,
                    price=price,
                    effective_from=datetime(2026, 1, 1, tzinfo=UTC),
                )
            )
        self.commit()


class FakeSession:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.store.commit()
        self.commits += 1

    async def rollback(self) -> None:
        self.store.rollback()
        self.rollbacks += 1


class FakeCatalogRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_instrument(self, db, instrument_id, for_update=False):
        return copy.deepcopy(self._store.instruments.get(instrument_id))

    async def list_instruments(self, db, category_id, cursor_id, limit):
        items = sorted(self._store.instruments.values(), key=lambda i: i.id)
        items = [
            i for i in items
            if (category_id is None or i.category_id == category_id)
            and (cursor_id is None or i.id > cursor_id)
        ]
        return copy.deepcopy(items[:limit])

    async def list_low_stock(self, db, threshold):
        items = [i for i in self._store.instruments.values() if i.stock < threshold]
        return copy.deepcopy(sorted(items, key=lambda i: (i.stock, i.id)))

    async def list_categories(self, db):
        return sorted(self._store.categories.values(), key=lambda c: c.name)

    async def get_current_price(self, db, instrument_id):
        history = await self.list_price_history(db, instrument_id)
        return history[0] if history else None

    async def list_price_history(self, db, instrument_id):
        records = [p for p in self._store.prices if p.instrument_id == instrument_id]
        records.sort(key=lambda p: (p.effective_from, p.id), reverse=True)
        return copy.deepcopy(records)

    async def insert_price(self, db, instrument_id, price):
        last = max((p.effective_from for p in self._store.prices), default=None)
        effective = datetime.now(UTC)
        if last is not None and effective <= last:
            effective = last + timedelta(microseconds=1)
        record = PriceRecord(
            id=len(self._store.prices) + 1,
            instrument_id=instrument_id,
            price=price,
            effective_from=effective,
        )
        self._store.prices.append(record)
        return copy.deepcopy(record)

    async def reserve_stock(self, db, instrument_id, quantity):
        instrument = self._store.instruments.get(instrument_id)
        if instrument is None or instrument.stock < quantity:
            return None
        instrument.stock -= quantity
        return copy.deepcopy(instrument)

    async def release_stock(self, db, instrument_id, quantity):
        instrument = self._store.instruments.get(instrument_id)
        if instrument is None:
            return None
        instrument.stock += quantity
        return copy.deepcopy(instrument)


class FakeOrderRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def customer_exists(self, db, customer_id):
        return customer_id in self._store.customers

    async def find_pending_by_customer(self, db, customer_id):
        for order in self._store.orders.values():
            if order.customer_id == customer_id and order.status == OrderStatus.PENDING_PAYMENT:
                return copy.deepcopy(order)
        return None

    async def save(self, db, order):
        # Emulates uq_orders_one_pending_per_customer
        if order.status == OrderStatus.PENDING_PAYMENT and any(
            o.customer_id == order.customer_id and o.status == OrderStatus.PENDING_PAYMENT
            for o in self._store.orders.values()
        ):
            raise PendingOrderExistsError(order.customer_id)
        self._store.orders[order.id] = copy.deepcopy(order)

    async def get_by_id(self, db, order_id):
        return copy.deepcopy(self._store.orders.get(order_id))

    async def list_orders(self, db, customer_id, status, cursor_id, limit):
        items = sorted(self._store.orders.values(), key=lambda o: o.id, reverse=True)
        items = [
            o for o in items
            if (customer_id is None or o.customer_id == customer_id)
            and (status is None or o.status == status)
            and (cursor_id is None or o.id < cursor_id)
        ]
        return copy.deepcopy(items[:limit])

    async def transition_status(self, db, order_id, from_status, to_status, reason=None):
        order = self._store.orders.get(order_id)
        if order is None or order.status != from_status:
            return False
        order.status = to_status
        order.status_changed_at = datetime.now(UTC)
        if reason is not None:
            order.cancel_reason = reason
        return True

    async def delete(self, db, order_id):
        order = self._store.orders.get(order_id)
        if order is None or order.status != OrderStatus.PENDING_PAYMENT:
            return False
        del self._store.orders[order_id]
        return True

    async def stats(self, db):
        counts = {s.value: 0 for s in OrderStatus}
        sales = 0
        for order in self._store.orders.values():
            counts[order.status.value] += 1
            if order.status in SALES_STATUSES:
                sales += order.total
        return OrderStats(counts=counts, sales_total=sales)


class FakePaymentRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def insert(self, db, payment):
        stored = copy.deepcopy(payment)
        stored.created_at = stored.updated_at = datetime.now(UTC)
        self._store.payments[payment.id] = stored

    async def get_by_id(self, db, payment_id):
        return copy.deepcopy(self._store.payments.get(payment_id))

    async def get_by_intent_reference(self, db, intent_reference):
        for payment in self._store.payments.values():
            if payment.intent_reference == intent_reference:
                return copy.deepcopy(payment)
        return None

    async def list_by_order(self, db, order_id):
        items = [p for p in self._store.payments.values() if p.order_id == order_id]
        return copy.deepcopy(sorted(items, key=lambda p: p.id, reverse=True))

    async def find_open_for_order(self, db, order_id):
        for payment in await self.list_by_order(db, order_id):
            if payment.status.is_open:
                return payment
        return None

    async def has_approved(self, db, order_id):
        return any(
            p.order_id == order_id and p.status == PaymentStatus.APPROVED
            for p in self._store.payments.values()
        )

    async def set_intent_reference(self, db, payment_id, intent_reference):
        self._store.payments[payment_id].intent_reference = intent_reference

    async def update_status(
        self, db, payment_id, expected_status, new_status,
        transaction_id=None, payment_method=None,
    ):
        payment = self._store.payments.get(payment_id)
        if payment is None or payment.status != expected_status:
            return None
        payment.status = new_status
        if transaction_id is not None:
            payment.external_transaction_id = transaction_id
        if payment_method is not None:
            payment.payment_method = payment_method
        payment.updated_at = datetime.now(UTC)
        return copy.deepcopy(payment)


class FakeGateway:
    def __init__(self) -> None:
        self.transactions: dict[str, GatewayTransaction] = {}
        self.intent_requests: list[PaymentIntentRequest] = []
        self.fail_create = False
        self.fail_lookup = False
        self.lookup_calls = 0
        self.search_calls = 0

    def add_transaction(
        self,
        transaction_id: str,
        status: str,
        order_id: str | None,
        date_created: datetime | None = None,
        payment_method: str | None = "visa",
    ) -> GatewayTransaction:
        tx = GatewayTransaction(
            id=transaction_id,
            status=status,
            external_reference=order_id,
            payment_method=payment_method,
            date_created=date_created,
        )
        self.transactions[transaction_id] = tx
        return tx

    async def create_intent(self, request):
        if self.fail_create:
            raise GatewayError("connection refused")
        self.intent_requests.append(request)
        ref = f"pref-{len(self.intent_requests)}"
        return PaymentIntent(
            id=ref,
            redirect_url=f"https://gateway.test/checkout/{ref}",
            sandbox_redirect_url=f"https://sandbox.gateway.test/checkout/{ref}",
        )

    async def get_transaction(self, transaction_id):
        self.lookup_calls += 1
        if self.fail_lookup:
            raise GatewayError("read timeout")
        return copy.deepcopy(self.transactions.get(transaction_id))

    async def search_transactions(self, external_reference):
        self.search_calls += 1
        if self.fail_lookup:
            raise GatewayError("read timeout")
        return [
            copy.deepcopy(t)
            for t in self.transactions.values()
            if t.external_reference == external_reference
        ]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> FakeStore:
    s = FakeStore()
    s.customers.update({CUSTOMER_ID, OTHER_CUSTOMER_ID})
    s.categories["1"] = Category(id="1", name="Cuerda")
    s.add_instrument("1001", "Guitarra Criolla", stock=5, price=10_000, category_id="1")
    s.add_instrument("1002", "Bajo Electrico", stock=2, price=50_000, category_id="1")
    s.add_instrument("1003", "Saxo Alto", stock=10, price=None, brand="Yamaha")
    return s


@pytest.fixture
def db(store: FakeStore) -> FakeSession:
    return FakeSession(store)


@pytest.fixture
def catalog(store: FakeStore) -> CatalogApplicationService:
    return CatalogApplicationService(repo=FakeCatalogRepository(store))


@pytest.fixture
def orders(store: FakeStore, catalog: CatalogApplicationService) -> OrderApplicationService:
    return OrderApplicationService(repo=FakeOrderRepository(store), catalog=catalog)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> PaymentStatusCache:
    return PaymentStatusCache(ttl_seconds=30.0, clock=clock)


@pytest.fixture
def payments(
    store: FakeStore,
    orders: OrderApplicationService,
    gateway: FakeGateway,
    cache: PaymentStatusCache,
) -> PaymentReconciliationService:
    return PaymentReconciliationService(
        repo=FakePaymentRepository(store),
        orders=orders,
        gateway=gateway,
        cache=cache,
        hot_window_seconds=5.0,
    )


@pytest.fixture
def customer_id() -> str:
    return CUSTOMER_ID


@pytest.fixture
def other_customer_id() -> str:
    return OTHER_CUSTOMER_ID
