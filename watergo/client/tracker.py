# watergo/client/tracker.py
"""
Client poll/notify loop for one order.

OrderTracker owns a single asyncio task. The task exists only while the
tracked order is present and non-terminal; it is cancelled by stop(),
by leaving the `async with` block, or by the owning OrderSession closing.
"""

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from watergo.client.config import ClientSettings, get_client_settings
from watergo.client.errors import ApiError, NetworkError
from watergo.client.notifications import StageNotification, StageNotifier
from watergo.models.status import OrderStatus, is_terminal
from watergo.schemas.order import DriverRead, OrderRead

logger = logging.getLogger(__name__)


@dataclass
class TrackedOrder:
    """Client-side view of the order being tracked."""

    order_id: uuid.UUID
    status: OrderStatus
    estimated_delivery_at: datetime | None = None
    driver: DriverRead | None = None
    queue_position: int | None = None
    orders_ahead: int | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @classmethod
    def from_order(cls, order: OrderRead) -> "TrackedOrder":
        driver = None
        if order.driver_id is not None:
            driver = DriverRead(id=order.driver_id, name=order.driver_name or "")
        return cls(
            order_id=order.id,
            status=order.status,
            estimated_delivery_at=order.estimated_delivery_at,
            driver=driver,
        )


UpdateCallback = Callable[[TrackedOrder | None], None]


class OrderTracker:
    """
    Periodically fetch {status, estimated_delivery_at, driver} and merge.

    Merge rules:
      - status, ETA and queue position always take the fetched value
      - driver is only replaced by a non-null fetched driver
        (last known good; a transient null never erases it)

    Each real stage change is handed to the StageNotifier, which fires
    exactly once per change.

    Failures:
      - NetworkError / non-404 ApiError: silent, retried next tick,
        previous_stage untouched
      - after `backoff_after` consecutive failures the delay doubles per
        failure, capped at `max_interval`
      - 404: the order is gone, tracking ends
    """

    def __init__(
        self,
        api,
        order: TrackedOrder | None,
        notifier: StageNotifier | None = None,
        on_update: UpdateCallback | None = None,
        interval: float | None = None,
        backoff_after: int | None = None,
        max_interval: float | None = None,
        settings: ClientSettings | None = None,
    ):
        settings = settings or get_client_settings()
        self._api = api
        self._order = order
        self.notifier = notifier or StageNotifier()
        self._on_update = on_update
        self._interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self._backoff_after = (
            backoff_after if backoff_after is not None else settings.POLL_BACKOFF_AFTER_FAILURES
        )
        self._max_interval = (
            max_interval if max_interval is not None else settings.POLL_MAX_INTERVAL_SECONDS
        )
        self.failures = 0
        self._stopped = False
        self._task: asyncio.Task | None = None

    # ---- state ----

    @property
    def order(self) -> TrackedOrder | None:
        return self._order

    @property
    def finished(self) -> bool:
        return self._stopped or self._order is None or self._order.is_terminal

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_delay(self) -> float:
        if self.failures < self._backoff_after:
            return self._interval
        exponent = self.failures - self._backoff_after + 1
        return min(self._interval * (2**exponent), self._max_interval)

    # ---- one poll ----

    async def tick(self) -> StageNotification | None:
        """
        Run one poll. Returns the notification fired by this tick, if any.
        """
        if self.finished:
            return None

        order_id = self._order.order_id
        try:
            status = await self._api.get_order_status(order_id)
            driver = await self._api.get_order_driver(order_id)
        except NetworkError as exc:
            self._record_failure(exc)
            return None
        except ApiError as exc:
            if exc.is_not_found:
                logger.info("Order %s no longer exists; tracking ends", order_id)
                self._order = None
                self._publish()
                return None
            self._record_failure(exc)
            return None

        if self._stopped:
            return None

        self.failures = 0
        order = self._order
        order.status = status.status
        order.estimated_delivery_at = status.estimated_delivery_at
        order.queue_position = status.queue_position
        order.orders_ahead = status.orders_ahead
        if driver is not None:
            order.driver = driver

        event = self.notifier.observe(order.status)
        self._publish()
        if order.is_terminal:
            logger.info("Order %s reached %s; tracking ends", order_id, order.status.value)
        return event

    def _record_failure(self, exc: Exception) -> None:
        self.failures += 1
        logger.debug("Poll failed for order (%s consecutive): %s", self.failures, exc)
        if self.failures == self._backoff_after:
            logger.warning(
                "Order poll failed %s times in a row; backing off up to %ss",
                self.failures,
                self._max_interval,
            )

    def _publish(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self._order)
        except Exception:
            logger.exception("Order update callback failed")

    # ---- lifecycle ----

    async def _run(self) -> None:
        while not self.finished:
            await self.tick()
            if self.finished:
                break
            await asyncio.sleep(self.next_delay())

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop (idempotent)."""
        if self.running:
            return self._task
        self._stopped = False
        self._task = asyncio.create_task(self._run())
        return self._task

    async def join(self) -> None:
        """Wait until the loop ends on its own (terminal / gone order)."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """
        Cancel the loop and wait for it. No tick runs after this returns.
        """
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Order poll loop had crashed",
                    exc_info=task.exception(),
                )
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> "OrderTracker":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
