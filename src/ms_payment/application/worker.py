"""NotificationWorker — bounded queue between the webhook endpoint and ingestion.

The webhook handler only enqueues and answers 200 at once; consumers pull
transaction ids and run PaymentReconciliationService.ingest_notification,
each job in its own AsyncSession. When the queue is full the notification
is dropped with a warning: the gateway re-delivers unacknowledged pushes
and polling reconciles the rest.

With one consumer (the default) notifications are processed strictly in
arrival order.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from config.settings import settings
from src.ms_common.database import async_session_factory
from src.ms_payment.application.service import get_reconciliation_service

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[str], Awaitable[None]]


async def process_notification(transaction_id: str) -> None:
    """Default handler: ingest one notification in a fresh session."""
    async with async_session_factory() as db:
        await get_reconciliation_service().ingest_notification(db, transaction_id)


class NotificationWorker:
    def __init__(
        self,
        handler: NotificationHandler = process_notification,
        queue_size: int | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[str] = asyncio.Queue(
            maxsize=queue_size or settings.WEBHOOK_QUEUE_SIZE
        )
        self._concurrency = max(1, concurrency or settings.WEBHOOK_WORKERS)
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._run(), name=f"payment-notifications-{i}")
            for i in range(self._concurrency)
        ]
        logger.info("Notification worker started with %d consumer(s)", self._concurrency)

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        if self._queue.qsize():
            logger.warning("Notification worker stopped with %d queued", self._queue.qsize())
        logger.info("Notification worker stopped")

    def submit(self, transaction_id: str) -> bool:
        """Enqueue without blocking; False if the queue is full."""
        try:
            self._queue.put_nowait(transaction_id)
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full (%d), dropping transaction %s",
                self._queue.maxsize, transaction_id,
            )
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued notification has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            transaction_id = await self._queue.get()
            try:
                await self._handler(transaction_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Notification %s failed", transaction_id)
            finally:
                self._queue.task_done()


_worker: NotificationWorker | None = None


def get_notification_worker() -> NotificationWorker:
    global _worker  # noqa: PLW0603
    if _worker is None:
        _worker = NotificationWorker()
    return _worker
