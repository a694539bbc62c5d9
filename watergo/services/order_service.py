# watergo/services/order_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from watergo.core.config import get_settings
from watergo.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from watergo.models.order import Order, OrderItem
from watergo.models.status import OrderStatus, to_customer_stage
from watergo.models.user import Role, User
from watergo.repositories.order_repo import OrderRepository
from watergo.schemas.order import (
    DriverRead,
    OrderCreate,
    OrderItemRead,
    OrderStatusRead,
    OrderWithItemsRead,
)

logger = logging.getLogger(__name__)


def check_order_access(actor: User, order: Order) -> None:
    """
    Ownership rule shared by reads and mutations.

      - admin    : any order
      - operator : orders of its firm
      - driver   : orders of its firm
      - client   : orders it placed
    """
    if actor.role == Role.ADMIN:
        return
    if actor.role in (Role.OPERATOR, Role.DRIVER):
        if actor.firm_id is not None and actor.firm_id == order.firm_id:
            return
    elif actor.role == Role.CLIENT and order.client_id == actor.id:
        return
    raise AuthorizationError("You do not have access to this order")


def check_firm_access(actor: User, firm_id: uuid.UUID) -> None:
    if actor.role == Role.ADMIN:
        return
    if actor.role == Role.OPERATOR and actor.firm_id == firm_id:
        return
    raise AuthorizationError("You do not operate this firm")


class OrderService:
    """
    Checkout and read side of the order core.

    Responsibilities:
      - Create an order from a frozen cart snapshot (status PENDING)
      - Allocate the per-firm order number
      - Make checkout retries safe through client_request_id
      - Status / driver reads for the tracking screen
      - Firm, client and driver-queue listings

    Status changes live in DispatchService.
    """

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo
        self.settings = get_settings()

    # -------- Checkout --------

    def create_order(
        self,
        session: Session,
        actor: User,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Create an order from the cart snapshot in payload.

        Steps:
          1. Replay: if client_request_id was already used, return that order.
          2. Compute total from the frozen unit prices.
          3. Allocate order_number = max + 1 within the firm.
          4. Insert Order + OrderItem rows and commit.
          5. On a unique violation (two checkouts took the same number),
             roll back and retry up to ORDER_NUMBER_RETRIES times.
        """
        client_id = actor.id
        client_name = actor.name

        existing = self._replay(session, client_id, payload.client_request_id)
        if existing is not None:
            return existing

        total = sum(it.unit_price * it.quantity for it in payload.items)
        if total <= 0:
            raise ValidationError("Total order amount must be positive")

        for attempt in range(1, self.settings.ORDER_NUMBER_RETRIES + 1):
            number = self.order_repo.max_order_number(session, payload.firm_id) + 1
            order = Order(
                order_number=number,
                firm_id=payload.firm_id,
                client_id=client_id,
                client_name=client_name,
                client_request_id=payload.client_request_id,
                address_text=payload.address.text,
                latitude=payload.address.latitude,
                longitude=payload.address.longitude,
                notes=payload.notes,
                status=OrderStatus.PENDING,
                total=total,
                estimated_delivery_at=payload.estimated_delivery_at,
            )
            try:
                order = self.order_repo.create_order(session, order)
                items = self.order_repo.create_items(
                    session,
                    [
                        OrderItem(
                            order_id=order.id,
                            product_id=it.product_id,
                            product_name=it.product_name,
                            quantity=it.quantity,
                            unit_price=it.unit_price,
                        )
                        for it in payload.items
                    ],
                )
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info(
                    "Checkout collided on firm=%s number=%s (attempt %s)",
                    payload.firm_id,
                    number,
                    attempt,
                )
                existing = self._replay(session, client_id, payload.client_request_id)
                if existing is not None:
                    return existing
                continue

            session.refresh(order)
            logger.info(
                "Order %s (%s) created for firm=%s total=%s",
                order.display_number,
                order.id,
                order.firm_id,
                order.total,
            )
            return self.build_order_with_items(order, items)

        raise ConflictError("Could not allocate an order number, please retry")

    def _replay(
        self,
        session: Session,
        client_id: uuid.UUID,
        client_request_id: str | None,
    ) -> OrderWithItemsRead | None:
        if not client_request_id:
            return None
        order = self.order_repo.get_by_client_request_id(session, client_request_id)
        if order is None:
            return None
        if order.client_id != client_id:
            raise ConflictError("client_request_id already used by another client")
        items = self.order_repo.list_items_for_order(session, order.id)
        return self.build_order_with_items(order, items)

    # -------- Reads --------

    def get_order(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        order = self._get_visible(session, actor, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self.build_order_with_items(order, items)

    def get_status(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> OrderStatusRead:
        """
        Status snapshot for polling. Queue position is only computed
        while the order waits for a driver.
        """
        order = self._get_visible(session, actor, order_id)

        queue_position = None
        orders_ahead = None
        if order.status == OrderStatus.PENDING:
            orders_ahead = self.order_repo.count_queued_ahead(session, order)
            queue_position = orders_ahead + 1

        return OrderStatusRead(
            order_id=order.id,
            status=order.status,
            stage=to_customer_stage(order.status),
            estimated_delivery_at=order.estimated_delivery_at,
            updated_at=order.updated_at,
            queue_position=queue_position,
            orders_ahead=orders_ahead,
        )

    def get_driver(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> DriverRead | None:
        order = self._get_visible(session, actor, order_id)
        if order.driver_id is None:
            return None
        return DriverRead(id=order.driver_id, name=order.driver_name or "")

    def list_firm_orders(
        self,
        session: Session,
        actor: User,
        firm_id: uuid.UUID,
        status: OrderStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        check_firm_access(actor, firm_id)
        return self.order_repo.list_for_firm(session, firm_id, status, skip, limit)

    def list_client_orders(
        self,
        session: Session,
        actor: User,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        return self.order_repo.list_for_client(session, actor.id, skip, limit)

    def list_available(
        self,
        session: Session,
        actor: User,
        limit: int = 50,
    ) -> list[Order]:
        """
        Orders waiting for a driver in the driver's firm, oldest first.
        """
        if actor.firm_id is None:
            raise AuthorizationError("Driver is not attached to a firm")
        return self.order_repo.list_queued(session, actor.firm_id, limit)

    # -------- Helpers --------

    def _get_visible(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFoundError("Order not found")
        check_order_access(actor, order)
        return order

    def build_order_with_items(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models.

        The stored total is returned as-is; line totals are display only.
        """
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                product_name=it.product_name,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.quantity * it.unit_price,
            )
            for it in items
        ]
        return OrderWithItemsRead.model_validate(
            {**order.model_dump(), "items": item_dtos}
        )
