# watergo/console/handlers.py
"""
Operator console actions.

The console never patches its order list locally. After every mutation
attempt, successful or not, the cached list is dropped and re-fetched
from the server, which is the only source of truth for status.
"""

import logging
import uuid
from typing import Awaitable, Callable

from watergo.client.errors import ApiError, ClientError, NetworkError
from watergo.models.status import OrderStatus, to_operator_label
from watergo.schemas.order import OrderRead

logger = logging.getLogger(__name__)


class OrderConsole:
    """
    Order list for one firm plus the dispatch actions: assign, advance,
    cancel and return-to-queue.

    While a request for an order is in flight, that order's controls are
    disabled (is_control_enabled() returns False) and further clicks are
    ignored.
    """

    def __init__(
        self,
        api,
        firm_id: uuid.UUID,
        status_filter: OrderStatus | None = None,
    ):
        self.api = api
        self.firm_id = firm_id
        self.status_filter = status_filter
        self.orders: list[OrderRead] = []
        self.last_error: ClientError | None = None
        self.stale = False
        self._in_flight: set[uuid.UUID] = set()

    def is_control_enabled(self, order_id: uuid.UUID) -> bool:
        return order_id not in self._in_flight

    def status_label(self, order: OrderRead) -> str:
        return to_operator_label(order.status)

    async def refresh(self) -> list[OrderRead]:
        """
        Re-fetch the full list. On a network failure the list stays empty
        and `stale` is set; the next refresh clears it.
        """
        try:
            self.orders = await self.api.list_orders(self.firm_id, self.status_filter)
        except NetworkError as exc:
            logger.warning("Console refresh failed: %s", exc)
            self.last_error = exc
            self.stale = True
            return self.orders
        self.stale = False
        return self.orders

    async def assign_driver(
        self,
        order: OrderRead,
        driver_id: uuid.UUID,
        driver_name: str,
    ) -> OrderRead | None:
        """Manual edit: put a driver on the order, or replace the current one."""
        return await self._mutate(
            order.id,
            "assign",
            lambda: self.api.assign_driver(order.id, driver_id, driver_name),
        )

    async def advance_stage(
        self,
        order: OrderRead,
        next_status: OrderStatus,
    ) -> OrderRead | None:
        """Manual edit: move the order one step along the delivery leg."""
        return await self._mutate(
            order.id,
            "advance",
            lambda: self.api.advance_stage(order.id, next_status),
        )

    async def cancel_order(self, order: OrderRead, reason: str | None) -> OrderRead | None:
        return await self._mutate(
            order.id,
            "cancel",
            lambda: self.api.cancel_order(order.id, reason),
        )

    async def return_to_queue(self, order: OrderRead) -> OrderRead | None:
        return await self._mutate(
            order.id,
            "return-to-queue",
            lambda: self.api.return_to_queue(order.id),
        )

    async def _mutate(
        self,
        order_id: uuid.UUID,
        action: str,
        call: Callable[[], Awaitable[OrderRead]],
    ) -> OrderRead | None:
        """
        Run one mutation.

        Returns the updated order, or None if a request for this order
        was already in flight. Raises the ApiError / NetworkError of a
        failed mutation after the control is re-enabled and the list is
        re-fetched.
        """
        if order_id in self._in_flight:
            logger.debug("Ignoring %s for %s: request in flight", action, order_id)
            return None

        self._in_flight.add(order_id)
        result: OrderRead | None = None
        error: ClientError | None = None
        try:
            result = await call()
        except (ApiError, NetworkError) as exc:
            error = exc
        finally:
            self._in_flight.discard(order_id)

        self.orders = []
        try:
            await self.refresh()
        except ClientError as exc:
            # Keep the mutation's own error; the refetch failure only
            # marks the list stale.
            logger.warning("Console refetch after %s failed: %s", action, exc)
            self.stale = True
            if error is None:
                self.last_error = exc

        if error is not None:
            logger.info("Console %s failed for %s: %s", action, order_id, error)
            self.last_error = error
            raise error
        if not self.stale:
            self.last_error = None
        return result
