# watergo/routers/firms.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from watergo.core.auth import require_staff
from watergo.database import get_session
from watergo.models.status import OrderStatus
from watergo.models.user import User
from watergo.repositories.order_repo import OrderRepository
from watergo.schemas.order import OrderRead
from watergo.services.order_service import OrderService

router = APIRouter(prefix="/firms", tags=["Firms"])

service = OrderService(OrderRepository())


@router.get(
    "/{firm_id}/orders",
    response_model=list[OrderRead],
)
def list_firm_orders(
    firm_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_staff),
    status: OrderStatus | None = None,
    skip: int = 0,
    limit: int = 50,
):
    """
    Operator console order list (newest first), optionally filtered by status.

    Auth:
      - operator of this firm, or admin.
    """
    return service.list_firm_orders(session, current_user, firm_id, status, skip, limit)
