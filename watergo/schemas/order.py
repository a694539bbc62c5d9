# watergo/schemas/order.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from watergo.models.status import CustomerStage, OrderStatus


class OrderItemCreate(SQLModel):
    """
    One frozen cart line. The cart service resolves names and prices
    before checkout; the order core never reads the live catalog.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    product_name: str
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)


class AddressSnapshot(SQLModel):
    """Opaque address supplied by the address service."""

    model_config = ConfigDict(extra="forbid")

    text: str
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("text")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("address cannot be empty")
        return v


class OrderCreate(SQLModel):
    """
    Payload for checkout.

    Client provides:
      - firm_id and the frozen items list
      - delivery address snapshot
      - estimated_delivery_at (optional)
      - notes (optional)
      - client_request_id (optional, makes retries safe)

    Backend derives:
      - client_id / client_name from token
      - status = PENDING
      - order_number and total
    """

    model_config = ConfigDict(extra="forbid")

    firm_id: uuid.UUID
    items: list[OrderItemCreate]
    address: AddressSnapshot
    estimated_delivery_at: datetime | None = None
    notes: str | None = None
    client_request_id: str | None = Field(default=None, max_length=64)

    @field_validator("items")
    @classmethod
    def has_items(cls, v: list[OrderItemCreate]) -> list[OrderItemCreate]:
        if not v:
            raise ValueError("order must contain at least one item")
        return v

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: int
    firm_id: uuid.UUID
    client_id: uuid.UUID
    client_name: str
    address_text: str
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None
    payment_method: str
    status: OrderStatus
    driver_id: uuid.UUID | None = None
    driver_name: str | None = None
    cancel_reason: str | None = None
    total: float
    created_at: datetime
    updated_at: datetime
    estimated_delivery_at: datetime | None = None
    cancelled_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusRead(SQLModel):
    """
    Payload polled by the tracking screen.

    queue_position / orders_ahead are only set while the order is PENDING.
    """

    order_id: uuid.UUID
    status: OrderStatus
    stage: CustomerStage
    estimated_delivery_at: datetime | None = None
    updated_at: datetime
    queue_position: int | None = None
    orders_ahead: int | None = None


class DriverRead(SQLModel):
    id: uuid.UUID
    name: str


# -------- Mutation payloads --------


class AssignDriverRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    driver_id: uuid.UUID
    driver_name: str


class AdvanceStageRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class CancelOrderRequest(SQLModel):
    """
    reason is required; it is optional here so that a missing reason is
    reported by the dispatch service as a validation error.
    """

    model_config = ConfigDict(extra="forbid")

    reason: str | None = None
