# watergo/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from watergo.models.status import OrderStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    """
    One delivery request from a client to a firm.

    Frozen at creation:
      - items (see OrderItem) and total

    Mutated only by the dispatch service:
      - status, driver_id / driver_name, cancel_reason,
        cancelled_at, delivered_at, updated_at

    Nothing changes once status is DELIVERED or CANCELLED.
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("firm_id", "order_number", name="uq_orders_firm_number"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # Sequential per firm, display only
    order_number: int = Field(index=True)

    firm_id: uuid.UUID = Field(index=True)

    client_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )
    client_name: str = Field(description="Client display name at checkout")

    # Idempotency key supplied by the client app for checkout retries
    client_request_id: str | None = Field(
        default=None,
        unique=True,
        index=True,
        max_length=64,
    )

    # Opaque address snapshot owned by the address service
    address_text: str = Field(description="Display address")
    latitude: float | None = None
    longitude: float | None = None

    notes: str | None = Field(
        default=None,
        description="Optional delivery instructions",
    )

    # Cash only today
    payment_method: str = Field(default="cash")

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        index=True,
        description="Canonical order status",
    )

    # Weak reference: the order does not own the driver
    driver_id: uuid.UUID | None = Field(default=None, index=True)
    driver_name: str | None = None

    cancel_reason: str | None = None

    total: float = Field(description="Sum of unit_price * quantity at checkout")

    created_at: datetime = Field(
        default_factory=utcnow,
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(default_factory=utcnow)
    estimated_delivery_at: datetime | None = None
    cancelled_at: datetime | None = None
    delivered_at: datetime | None = None

    @property
    def display_number(self) -> str:
        return f"ORD-{self.order_number:06d}"


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, priced at checkout time.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # Catalog reference, not a foreign key: catalog lives elsewhere
    product_id: uuid.UUID = Field(index=True)
    product_name: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        description="Unit price at time of order",
    )
