# watergo/routers/orders.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from watergo.core.auth import (
    get_current_user,
    require_client,
    require_driver,
    require_roles,
    require_staff,
)
from watergo.database import get_session
from watergo.models.user import Role, User
from watergo.repositories.order_repo import OrderRepository
from watergo.schemas.order import (
    AdvanceStageRequest,
    AssignDriverRequest,
    CancelOrderRequest,
    DriverRead,
    OrderCreate,
    OrderRead,
    OrderStatusRead,
    OrderWithItemsRead,
)
from watergo.services.dispatch_service import DispatchService
from watergo.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
service = OrderService(order_repo)
dispatch = DispatchService(order_repo)


# -------- Client endpoints --------


@router.post(
    "",
    response_model=OrderWithItemsRead,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_client),
):
    """
    Checkout: freeze the cart snapshot into a PENDING order.

    Repeating the call with the same client_request_id returns the
    order created by the first call.
    """
    return service.create_order(session, current_user, payload)


@router.get(
    "/me",
    response_model=list[OrderRead],
)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_client),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated client's orders (newest first).
    """
    return service.list_client_orders(session, current_user, skip, limit)


# -------- Driver endpoints --------


@router.get(
    "/available",
    response_model=list[OrderRead],
)
def list_available_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_driver),
    limit: int = 50,
):
    """
    Orders of the driver's firm that wait for a driver, oldest first.
    """
    return service.list_available(session, current_user, limit)


@router.post(
    "/{order_id}/accept",
    response_model=OrderRead,
)
def accept_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_driver),
):
    """
    Driver takes an order for itself (PENDING -> ASSIGNED).
    """
    return dispatch.assign_driver(
        session, current_user, order_id, current_user.id, current_user.name
    )


# -------- Shared reads --------


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return service.get_order(session, current_user, order_id)


@router.get(
    "/{order_id}/status",
    response_model=OrderStatusRead,
)
def get_order_status(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Status snapshot used by the tracking screen poll.
    """
    return service.get_status(session, current_user, order_id)


@router.get(
    "/{order_id}/driver",
    response_model=DriverRead | None,
)
def get_order_driver(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Driver snapshot, or null while no driver is assigned.
    """
    return service.get_driver(session, current_user, order_id)


# -------- Dispatch --------


@router.post(
    "/{order_id}/assign",
    response_model=OrderRead,
)
def assign_driver(
    order_id: uuid.UUID,
    payload: AssignDriverRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_staff),
):
    """
    Assign or reassign a driver (operator / admin).

      PENDING  -> ASSIGNED

      ASSIGNED -> ASSIGNED (previous driver replaced)
    """
    return dispatch.assign_driver(
        session, current_user, order_id, payload.driver_id, payload.driver_name
    )


@router.post(
    "/{order_id}/advance",
    response_model=OrderRead,
)
def advance_stage(
    order_id: uuid.UUID,
    payload: AdvanceStageRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(
        require_roles(Role.DRIVER, Role.OPERATOR, Role.ADMIN)
    ),
):
    """
    One step forward on the delivery leg.

      ASSIGNED   -> ON_THE_WAY

      ON_THE_WAY -> DELIVERED
    """
    return dispatch.advance_stage(session, current_user, order_id, payload.status)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderRead,
)
def cancel_order(
    order_id: uuid.UUID,
    payload: CancelOrderRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Cancel a non-terminal order. A reason is required.
    """
    return dispatch.cancel(session, current_user, order_id, payload.reason)


@router.post(
    "/{order_id}/return-to-queue",
    response_model=OrderRead,
)
def return_to_queue(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Put an ASSIGNED / ON_THE_WAY order back to PENDING and drop its driver.
    """
    return dispatch.return_to_queue(session, current_user, order_id)
