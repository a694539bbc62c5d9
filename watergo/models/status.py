# watergo/models/status.py
"""
Canonical order status plus the presentation tables built on top of it.

There is exactly one status vocabulary in storage and in the state machine.
Customer-facing "stage" names and operator labels are derived views,
declared here as total, invertible tables.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

# Forward path, one step at a time
FORWARD_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ASSIGNED,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


class CustomerStage(str, Enum):
    """Names the customer app shows for each status."""

    IN_QUEUE = "IN_QUEUE"
    COURIER_ASSIGNED = "COURIER_ASSIGNED"
    COURIER_ON_THE_WAY = "COURIER_ON_THE_WAY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


CUSTOMER_STAGE_BY_STATUS: dict[OrderStatus, CustomerStage] = {
    OrderStatus.PENDING: CustomerStage.IN_QUEUE,
    OrderStatus.ASSIGNED: CustomerStage.COURIER_ASSIGNED,
    OrderStatus.ON_THE_WAY: CustomerStage.COURIER_ON_THE_WAY,
    OrderStatus.DELIVERED: CustomerStage.DELIVERED,
    OrderStatus.CANCELLED: CustomerStage.CANCELLED,
}

STATUS_BY_CUSTOMER_STAGE: dict[CustomerStage, OrderStatus] = {
    stage: status for status, stage in CUSTOMER_STAGE_BY_STATUS.items()
}

# Operator console labels
OPERATOR_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.ASSIGNED: "Confirmed",
    OrderStatus.ON_THE_WAY: "Delivering",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}

STATUS_BY_OPERATOR_LABEL: dict[str, OrderStatus] = {
    label: status for status, label in OPERATOR_LABELS.items()
}


def to_customer_stage(status: OrderStatus) -> CustomerStage:
    return CUSTOMER_STAGE_BY_STATUS[status]


def from_customer_stage(stage: CustomerStage) -> OrderStatus:
    return STATUS_BY_CUSTOMER_STAGE[stage]


def to_operator_label(status: OrderStatus) -> str:
    return OPERATOR_LABELS[status]


def from_operator_label(label: str) -> OrderStatus:
    return STATUS_BY_OPERATOR_LABEL[label]
