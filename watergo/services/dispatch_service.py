# watergo/services/dispatch_service.py
import logging
import uuid

from sqlmodel import Session

from watergo.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from watergo.models.order import Order, utcnow
from watergo.models.status import FORWARD_PATH, OrderStatus
from watergo.models.user import Role, User
from watergo.repositories.order_repo import OrderRepository
from watergo.services.order_service import check_order_access
from watergo.services.transitions import ensure_transition

logger = logging.getLogger(__name__)

# advance_stage only walks the delivery leg: the forward path after ASSIGNED
_DELIVERY_STAGES = frozenset(
    FORWARD_PATH[FORWARD_PATH.index(OrderStatus.ASSIGNED) + 1 :]
)


class DispatchService:
    """
    The only writer of order status.

    Every operation follows the same order of checks:
      1. input validation (ValidationError, before any read)
      2. load under row lock (NotFoundError)
      3. ownership (AuthorizationError)
      4. transition legality against the *stored* status (ConflictError)
      5. write + commit

    The caller's idea of the previous status is never trusted: a client
    acting on stale data gets a ConflictError. Nothing is retried here.
    """

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo

    def assign_driver(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        driver_id: uuid.UUID,
        driver_name: str,
    ) -> Order:
        """
        PENDING -> ASSIGNED, or ASSIGNED -> ASSIGNED to replace the driver.

        Drivers may only assign themselves (self-accept).
        """
        driver_name = (driver_name or "").strip()
        if not driver_name:
            raise ValidationError("driver_name is required")
        if actor.role == Role.DRIVER and driver_id != actor.id:
            raise AuthorizationError("Drivers can only accept orders for themselves")

        order = self._load_for_update(session, actor, order_id)
        if actor.role == Role.DRIVER and order.status == OrderStatus.ASSIGNED:
            session.rollback()
            if order.driver_id == actor.id:
                raise ConflictError("You have already accepted this order")
            raise ConflictError("Order was already taken by another driver")
        self._ensure(session, order, OrderStatus.ASSIGNED, actor)

        previous = order.driver_id
        order.driver_id = driver_id
        order.driver_name = driver_name
        order = self._commit(session, order, OrderStatus.ASSIGNED)
        if previous is not None and previous != driver_id:
            logger.info("Order %s reassigned from %s to %s", order.id, previous, driver_id)
        return order

    def advance_stage(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        next_status: OrderStatus,
    ) -> Order:
        """
        Move one step along ASSIGNED -> ON_THE_WAY -> DELIVERED.

        Raises:
            ValidationError: next_status is not a delivery stage.
            ConflictError: skip-ahead, repeat, or terminal source.
        """
        if next_status not in _DELIVERY_STAGES:
            raise ValidationError(
                f"advance only accepts {OrderStatus.ON_THE_WAY.value} or "
                f"{OrderStatus.DELIVERED.value}"
            )

        order = self._load_for_update(session, actor, order_id, driver_must_own=True)
        self._ensure(session, order, next_status, actor)

        if next_status == OrderStatus.DELIVERED:
            order.delivered_at = utcnow()
        return self._commit(session, order, next_status)

    def cancel(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        reason: str | None,
    ) -> Order:
        """
        Any non-terminal status -> CANCELLED. reason is mandatory.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A cancel reason is required")

        order = self._load_for_update(session, actor, order_id)
        self._ensure(session, order, OrderStatus.CANCELLED, actor)

        order.cancel_reason = reason
        order.cancelled_at = utcnow()
        return self._commit(session, order, OrderStatus.CANCELLED)

    def return_to_queue(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> Order:
        """
        ASSIGNED | ON_THE_WAY -> PENDING, clearing the driver.

        Fails from PENDING (a no-op would hide a stale client) and from
        terminal statuses.
        """
        order = self._load_for_update(session, actor, order_id, driver_must_own=True)
        self._ensure(session, order, OrderStatus.PENDING, actor)

        order.driver_id = None
        order.driver_name = None
        return self._commit(session, order, OrderStatus.PENDING)

    # -------- Helpers --------

    def _load_for_update(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        driver_must_own: bool = False,
    ) -> Order:
        """
        Load under row lock and check ownership.

        driver_must_own: a driver may only touch orders assigned to itself.
        """
        order = self.order_repo.get_for_update(session, order_id)
        if order is None:
            session.rollback()
            raise NotFoundError("Order not found")
        try:
            check_order_access(actor, order)
            if (
                driver_must_own
                and actor.role == Role.DRIVER
                and order.driver_id is not None
                and order.driver_id != actor.id
            ):
                raise AuthorizationError("Order is assigned to another driver")
        except AuthorizationError:
            session.rollback()
            raise
        return order

    def _ensure(
        self,
        session: Session,
        order: Order,
        target: OrderStatus,
        actor: User,
    ) -> None:
        try:
            ensure_transition(order.status, target, actor.role)
        except (ConflictError, AuthorizationError) as exc:
            logger.info(
                "Rejected %s -> %s on order %s by %s: %s",
                order.status.value,
                target.value,
                order.id,
                actor.role.value,
                exc.message,
            )
            session.rollback()
            raise

    def _commit(self, session: Session, order: Order, target: OrderStatus) -> Order:
        previous = order.status
        order.status = target
        order.updated_at = utcnow()
        order = self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info(
            "Order %s moved %s -> %s",
            order.id,
            previous.value,
            target.value,
        )
        return order
