# watergo/services/transitions.py
"""
Order transition validator.

Pure functions over (current status, requested status, actor role).
No I/O and no state: the dispatch service calls ensure_transition()
with the status it just read under a row lock.

Legal edges:

  PENDING    -> ASSIGNED     dispatch assigns a driver
  ASSIGNED   -> ASSIGNED     reassignment (previous driver overwritten)
  ASSIGNED   -> ON_THE_WAY   driver starts delivery
  ON_THE_WAY -> DELIVERED    delivery confirmed (terminal)
  PENDING | ASSIGNED | ON_THE_WAY -> CANCELLED   (terminal)
  ASSIGNED | ON_THE_WAY -> PENDING               return-to-queue

Everything else, including re-applying a transition that already
happened, is a conflict.
"""

from enum import Enum

from watergo.core.errors import AuthorizationError, ConflictError
from watergo.models.status import OrderStatus, is_terminal
from watergo.models.user import Role

_STAFF = frozenset({Role.OPERATOR, Role.ADMIN})
_DELIVERY = _STAFF | {Role.DRIVER}
_CANCELLERS = _STAFF | {Role.CLIENT}

LEGAL_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[Role]] = {
    (OrderStatus.PENDING, OrderStatus.ASSIGNED): _DELIVERY,
    (OrderStatus.ASSIGNED, OrderStatus.ASSIGNED): _STAFF,
    (OrderStatus.ASSIGNED, OrderStatus.ON_THE_WAY): _DELIVERY,
    (OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED): _DELIVERY,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): _CANCELLERS,
    (OrderStatus.ASSIGNED, OrderStatus.CANCELLED): _CANCELLERS,
    (OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED): _CANCELLERS,
    (OrderStatus.ASSIGNED, OrderStatus.PENDING): _DELIVERY,
    (OrderStatus.ON_THE_WAY, OrderStatus.PENDING): _DELIVERY,
}


class Verdict(str, Enum):
    ALLOWED = "allowed"
    TERMINAL = "terminal"
    ILLEGAL = "illegal"
    FORBIDDEN = "forbidden"


def evaluate_transition(
    current: OrderStatus,
    requested: OrderStatus,
    role: Role,
) -> Verdict:
    """Classify a requested transition without raising."""
    if is_terminal(current):
        return Verdict.TERMINAL
    if not is_legal(current, requested):
        return Verdict.ILLEGAL
    if role not in LEGAL_TRANSITIONS[(current, requested)]:
        return Verdict.FORBIDDEN
    return Verdict.ALLOWED


def is_legal(current: OrderStatus, requested: OrderStatus) -> bool:
    """True if the edge exists for at least one role."""
    return (current, requested) in LEGAL_TRANSITIONS


def ensure_transition(
    current: OrderStatus,
    requested: OrderStatus,
    role: Role,
) -> None:
    """
    Raise unless the transition is allowed.

    Raises:
        ConflictError: terminal source or an edge not in LEGAL_TRANSITIONS.
        AuthorizationError: legal edge, but not for this role.
    """
    verdict = evaluate_transition(current, requested, role)
    if verdict is Verdict.TERMINAL:
        raise ConflictError(
            f"Order is already {current.value}; no further changes are allowed"
        )
    if verdict is Verdict.ILLEGAL:
        raise ConflictError(
            f"Invalid status transition: {current.value} -> {requested.value}"
        )
    if verdict is Verdict.FORBIDDEN:
        raise AuthorizationError(
            f"Role '{role.value}' may not move an order "
            f"from {current.value} to {requested.value}"
        )
