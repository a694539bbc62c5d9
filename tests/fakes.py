"""In-memory stand-ins for OrderApiClient used by the client-side tests."""

import uuid
from datetime import datetime, timezone

from watergo.client.errors import ApiError, NetworkError
from watergo.models.status import OrderStatus, to_customer_stage
from watergo.schemas.order import DriverRead, OrderRead, OrderStatusRead


def make_order_read(status: OrderStatus = OrderStatus.PENDING, **overrides) -> OrderRead:
    now = datetime.now(timezone.utc)
    data = dict(
        id=uuid.uuid4(),
        order_number=1,
        firm_id=uuid.uuid4(),
        client_id=uuid.uuid4(),
        client_name="Aziza",
        address_text="Yunusobod 4, 12",
        payment_method="cash",
        status=status,
        total=47000,
        created_at=now,
        updated_at=now,
    )
    data.update(overrides)
    return OrderRead(**data)


class ScriptedApi:
    """
    Serves status/driver polls from a script.

    Each script entry is one poll: an OrderStatus, a (status, driver)
    pair, or an exception instance to raise.
    """

    def __init__(self, script):
        self.script = list(script)
        self.status_calls = 0
        self._driver = None

    def _next(self):
        if not self.script:
            raise NetworkError("script exhausted")
        return self.script.pop(0)

    async def get_order_status(self, order_id):
        self.status_calls += 1
        entry = self._next()
        if isinstance(entry, Exception):
            raise entry
        status, driver = entry if isinstance(entry, tuple) else (entry, None)
        self._driver = driver
        return OrderStatusRead(
            order_id=order_id,
            status=status,
            stage=to_customer_stage(status),
            updated_at=datetime.now(timezone.utc),
            queue_position=1 if status == OrderStatus.PENDING else None,
            orders_ahead=0 if status == OrderStatus.PENDING else None,
        )

    async def get_order_driver(self, order_id):
        return self._driver


def not_found() -> ApiError:
    return ApiError(404, "not_found", "Order not found")


def driver(name: str = "Bekzod") -> DriverRead:
    return DriverRead(id=uuid.uuid4(), name=name)
