"""In-process payment status cache keyed by gateway intent reference.

Two maps, both with a TTL checked on read (entries are never evicted
proactively, an expired entry is simply ignored and later overwritten):

  intent reference -> (status, stored_at)
  intent reference -> gateway transaction id

Shared by request handlers and the webhook worker; all access goes through
one lock. The clock is injectable so tests can move time explicitly.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from src.ms_common.enums import PaymentStatus

DEFAULT_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CachedStatus:
    status: PaymentStatus
    stored_at: float


@dataclass(frozen=True)
class _CachedTransaction:
    transaction_id: str
    stored_at: float


class PaymentStatusCache:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._statuses: dict[str, CachedStatus] = {}
        self._transactions: dict[str, _CachedTransaction] = {}

    def age(self, entry: CachedStatus) -> float:
        return self._clock() - entry.stored_at

    def get_status(self, intent_reference: str) -> CachedStatus | None:
        with self._lock:
            entry = self._statuses.get(intent_reference)
            if entry is None or self._clock() - entry.stored_at > self._ttl:
                return None
            return entry

    def put_status(self, intent_reference: str, status: PaymentStatus) -> None:
        with self._lock:
            self._statuses[intent_reference] = CachedStatus(status, self._clock())

    def get_transaction_id(self, intent_reference: str) -> str | None:
        with self._lock:
            entry = self._transactions.get(intent_reference)
            if entry is None or self._clock() - entry.stored_at > self._ttl:
                return None
            return entry.transaction_id

    def put_transaction_id(self, intent_reference: str, transaction_id: str) -> None:
        with self._lock:
            self._transactions[intent_reference] = _CachedTransaction(
                transaction_id, self._clock()
            )

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._transactions.clear()
