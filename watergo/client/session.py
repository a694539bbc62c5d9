# watergo/client/session.py
"""
Customer-side state container.

One OrderSession is created when the customer logs in and closed on
logout. It is passed explicitly to whatever needs order state; there is
no module-level current order.
"""

import logging
import uuid
from dataclasses import dataclass

from watergo.client.config import ClientSettings, get_client_settings
from watergo.client.errors import ApiError, NetworkError
from watergo.client.notifications import StageNotifier
from watergo.client.tracker import OrderTracker, TrackedOrder
from watergo.schemas.order import OrderCreate, OrderRead

logger = logging.getLogger(__name__)


@dataclass
class PendingOrder:
    """
    A checkout whose outcome is unknown (the request failed in transit).

    It is not an order: it never appears in history and has no order id.
    reconcile_pending() re-sends it with the same client_request_id, so a
    first attempt that did reach the server is returned, not duplicated.
    """

    client_request_id: str
    payload: OrderCreate
    attempts: int = 1
    last_error: str | None = None


class SessionClosedError(RuntimeError):
    pass


class OrderSession:
    """
    Holds the customer's current order, order history, pending checkouts
    and the tracker polling the current order.

    active_order / show_tracking_tab drive the "active order" banner and
    the temporary tracking tab: both exist only while the current order
    is non-terminal.
    """

    def __init__(
        self,
        api,
        notifier: StageNotifier | None = None,
        settings: ClientSettings | None = None,
    ):
        self.api = api
        self.notifier = notifier or StageNotifier()
        self.settings = settings or get_client_settings()
        self.current_order: TrackedOrder | None = None
        self.history: list[OrderRead] = []
        self.pending: dict[str, PendingOrder] = {}
        self.closed = False
        self._tracker: OrderTracker | None = None

    # ---- derived state ----

    @property
    def active_order(self) -> TrackedOrder | None:
        if self.current_order is None or self.current_order.is_terminal:
            return None
        return self.current_order

    @property
    def show_tracking_tab(self) -> bool:
        return self.active_order is not None

    @property
    def tracker(self) -> OrderTracker | None:
        return self._tracker

    # ---- startup ----

    async def load_history(self) -> list[OrderRead]:
        """
        Fetch the customer's orders and resume tracking the newest
        non-terminal one, if any.
        """
        self._ensure_open()
        self.history = await self.api.list_my_orders()
        for order in self.history:
            if not TrackedOrder.from_order(order).is_terminal:
                await self.track(TrackedOrder.from_order(order))
                break
        return self.history

    # ---- checkout ----

    async def place_order(self, payload: OrderCreate) -> OrderRead | PendingOrder:
        """
        Send a checkout. A transport failure yields a PendingOrder instead
        of a locally invented order; ApiError propagates to the caller.
        """
        self._ensure_open()
        if not payload.client_request_id:
            payload = payload.model_copy(update={"client_request_id": uuid.uuid4().hex})

        try:
            order = await self.api.create_order(payload)
        except NetworkError as exc:
            pending = PendingOrder(
                client_request_id=payload.client_request_id,
                payload=payload,
                last_error=str(exc),
            )
            self.pending[pending.client_request_id] = pending
            logger.info("Checkout %s pending reconciliation: %s", pending.client_request_id, exc)
            return pending

        await self._adopt(order)
        return order

    async def reconcile_pending(self) -> list[OrderRead]:
        """
        Retry every pending checkout once. Returns the orders confirmed by
        this call. Pending entries the server rejects are dropped.
        """
        self._ensure_open()
        confirmed: list[OrderRead] = []
        for key, pending in list(self.pending.items()):
            try:
                order = await self.api.create_order(pending.payload)
            except NetworkError as exc:
                pending.attempts += 1
                pending.last_error = str(exc)
                continue
            except ApiError as exc:
                logger.warning("Checkout %s rejected on retry: %s", key, exc)
                del self.pending[key]
                continue

            del self.pending[key]
            await self._adopt(order)
            confirmed.append(order)
        return confirmed

    # ---- tracking ----

    async def track(self, order: TrackedOrder) -> OrderTracker:
        """
        Make `order` the current order and poll it. Any previous tracker
        is stopped first, so at most one poll loop exists per session.
        """
        self._ensure_open()
        await self._stop_tracker()
        self.current_order = order
        self.notifier.reset()
        self._tracker = OrderTracker(
            self.api,
            order,
            notifier=self.notifier,
            on_update=self._on_tracker_update,
            settings=self.settings,
        )
        if not order.is_terminal:
            self._tracker.start()
        return self._tracker

    def _on_tracker_update(self, order: TrackedOrder | None) -> None:
        self.current_order = order

    async def _adopt(self, order: OrderRead) -> None:
        self.history = [o for o in self.history if o.id != order.id]
        self.history.insert(0, order)
        await self.track(TrackedOrder.from_order(order))

    async def _stop_tracker(self) -> None:
        if self._tracker is not None:
            await self._tracker.stop()
            self._tracker = None

    # ---- teardown ----

    async def close(self) -> None:
        """Logout: stop polling and drop all customer state."""
        await self._stop_tracker()
        self.current_order = None
        self.history = []
        self.pending = {}
        self.closed = True

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("Order session is closed")
