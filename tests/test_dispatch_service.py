"""
Dispatch service against a real (SQLite) order store.

Covers the lifecycle scenarios, terminal immutability, return-to-queue
and the validation -> not found -> ownership -> conflict check order.
"""

import uuid

import pytest
from sqlmodel import select

from conftest import make_order_payload
from watergo.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from watergo.models.order import Order, OrderItem
from watergo.models.status import OrderStatus
from watergo.models.user import Role, User

S = OrderStatus


def stored(session, order_id) -> Order:
    session.expire_all()
    return session.get(Order, order_id)


def drive_to(session, dispatch, actors, order_id, target: OrderStatus) -> None:
    """Walk an order from PENDING to `target` through legal edges."""
    op = actors["operator"]
    d1 = actors["d1"]
    if target == S.PENDING:
        return
    if target == S.CANCELLED:
        dispatch.cancel(session, op, order_id, "customer changed mind")
        return
    dispatch.assign_driver(session, op, order_id, d1.id, d1.name)
    if target == S.ASSIGNED:
        return
    dispatch.advance_stage(session, op, order_id, S.ON_THE_WAY)
    if target == S.ON_THE_WAY:
        return
    dispatch.advance_stage(session, op, order_id, S.DELIVERED)


def test_scenario_a_full_lifecycle(session, dispatch, actors, placed_order) -> None:
    op, d1 = actors["operator"], actors["d1"]
    assert placed_order.status == S.PENDING
    assert placed_order.total == 47_000

    order = dispatch.assign_driver(session, op, placed_order.id, d1.id, "Driver One")
    assert order.status == S.ASSIGNED
    assert order.driver_id == d1.id

    order = dispatch.advance_stage(session, d1, placed_order.id, S.ON_THE_WAY)
    assert order.status == S.ON_THE_WAY

    order = dispatch.advance_stage(session, d1, placed_order.id, S.DELIVERED)
    assert order.status == S.DELIVERED
    assert order.delivered_at is not None

    with pytest.raises(ConflictError):
        dispatch.cancel(session, op, placed_order.id, "too late")

    after = stored(session, placed_order.id)
    assert after.status == S.DELIVERED
    assert after.cancel_reason is None


def test_scenario_b_return_to_queue_then_reassign(session, dispatch, actors, placed_order) -> None:
    op, d1, d2 = actors["operator"], actors["d1"], actors["d2"]
    dispatch.assign_driver(session, op, placed_order.id, d1.id, d1.name)

    order = dispatch.return_to_queue(session, op, placed_order.id)
    assert order.status == S.PENDING
    assert order.driver_id is None
    assert order.driver_name is None

    order = dispatch.assign_driver(session, op, placed_order.id, d2.id, d2.name)
    assert order.status == S.ASSIGNED
    assert order.driver_id == d2.id


def test_scenario_c_cancel_without_reason(session, dispatch, actors, placed_order) -> None:
    for reason in (None, "", "   "):
        with pytest.raises(ValidationError):
            dispatch.cancel(session, actors["operator"], placed_order.id, reason)

    after = stored(session, placed_order.id)
    assert after.status == S.PENDING
    assert after.cancel_reason is None


def test_validation_comes_before_lookup(session, dispatch, actors) -> None:
    with pytest.raises(ValidationError):
        dispatch.cancel(session, actors["operator"], uuid.uuid4(), None)


def test_unknown_order_is_not_found(session, dispatch, actors) -> None:
    with pytest.raises(NotFoundError):
        dispatch.return_to_queue(session, actors["operator"], uuid.uuid4())


def test_cancel_stores_reason(session, dispatch, actors, placed_order) -> None:
    order = dispatch.cancel(session, actors["client"], placed_order.id, " wrong address ")
    assert order.status == S.CANCELLED
    assert order.cancel_reason == "wrong address"
    assert order.cancelled_at is not None


@pytest.mark.parametrize("terminal", [S.DELIVERED, S.CANCELLED])
def test_terminal_orders_reject_every_mutation(
    session, dispatch, actors, placed_order, terminal
) -> None:
    op, d2 = actors["operator"], actors["d2"]
    drive_to(session, dispatch, actors, placed_order.id, terminal)
    before = stored(session, placed_order.id).model_dump()

    attempts = [
        lambda: dispatch.assign_driver(session, op, placed_order.id, d2.id, d2.name),
        lambda: dispatch.advance_stage(session, op, placed_order.id, S.ON_THE_WAY),
        lambda: dispatch.advance_stage(session, op, placed_order.id, S.DELIVERED),
        lambda: dispatch.cancel(session, op, placed_order.id, "again"),
        lambda: dispatch.return_to_queue(session, op, placed_order.id),
    ]
    for attempt in attempts:
        with pytest.raises(ConflictError):
            attempt()

    assert stored(session, placed_order.id).model_dump() == before


@pytest.mark.parametrize("source", list(OrderStatus))
def test_return_to_queue_from_every_status(session, dispatch, actors, placed_order, source) -> None:
    drive_to(session, dispatch, actors, placed_order.id, source)

    if source in (S.ASSIGNED, S.ON_THE_WAY):
        order = dispatch.return_to_queue(session, actors["operator"], placed_order.id)
        assert order.status == S.PENDING
        assert order.driver_id is None
    else:
        with pytest.raises(ConflictError):
            dispatch.return_to_queue(session, actors["operator"], placed_order.id)
        assert stored(session, placed_order.id).status == source


def test_advance_rejects_skip_ahead(session, dispatch, actors, placed_order) -> None:
    drive_to(session, dispatch, actors, placed_order.id, S.ASSIGNED)
    with pytest.raises(ConflictError):
        dispatch.advance_stage(session, actors["operator"], placed_order.id, S.DELIVERED)
    assert stored(session, placed_order.id).status == S.ASSIGNED


def test_advance_from_pending_is_a_conflict(session, dispatch, actors, placed_order) -> None:
    with pytest.raises(ConflictError):
        dispatch.advance_stage(session, actors["operator"], placed_order.id, S.ON_THE_WAY)


@pytest.mark.parametrize("target", [S.PENDING, S.ASSIGNED, S.CANCELLED])
def test_advance_only_accepts_delivery_stages(session, dispatch, actors, placed_order, target) -> None:
    with pytest.raises(ValidationError):
        dispatch.advance_stage(session, actors["operator"], placed_order.id, target)


def test_reassignment_overwrites_previous_driver(session, dispatch, actors, placed_order) -> None:
    op, d1, d2 = actors["operator"], actors["d1"], actors["d2"]
    dispatch.assign_driver(session, op, placed_order.id, d1.id, d1.name)
    order = dispatch.assign_driver(session, op, placed_order.id, d2.id, d2.name)
    assert order.status == S.ASSIGNED
    assert (order.driver_id, order.driver_name) == (d2.id, d2.name)


def test_assign_rejected_once_on_the_way(session, dispatch, actors, placed_order) -> None:
    drive_to(session, dispatch, actors, placed_order.id, S.ON_THE_WAY)
    with pytest.raises(ConflictError):
        dispatch.assign_driver(
            session, actors["operator"], placed_order.id, actors["d2"].id, "Driver Two"
        )


def test_assign_requires_driver_name(session, dispatch, actors, placed_order) -> None:
    with pytest.raises(ValidationError):
        dispatch.assign_driver(session, actors["operator"], placed_order.id, uuid.uuid4(), " ")


def test_driver_can_only_accept_for_itself(session, dispatch, actors, placed_order) -> None:
    d1, d2 = actors["d1"], actors["d2"]
    with pytest.raises(AuthorizationError):
        dispatch.assign_driver(session, d1, placed_order.id, d2.id, d2.name)

    order = dispatch.assign_driver(session, d1, placed_order.id, d1.id, d1.name)
    assert order.driver_id == d1.id


def test_second_driver_accept_is_a_conflict(session, dispatch, actors, placed_order) -> None:
    d1, d2 = actors["d1"], actors["d2"]
    dispatch.assign_driver(session, d1, placed_order.id, d1.id, d1.name)
    with pytest.raises(ConflictError):
        dispatch.assign_driver(session, d2, placed_order.id, d2.id, d2.name)
    assert stored(session, placed_order.id).driver_id == d1.id


def test_driver_reaccepting_own_order_is_told_so(session, dispatch, actors, placed_order) -> None:
    d1, d2 = actors["d1"], actors["d2"]
    dispatch.assign_driver(session, d1, placed_order.id, d1.id, d1.name)

    with pytest.raises(ConflictError) as own:
        dispatch.assign_driver(session, d1, placed_order.id, d1.id, d1.name)
    with pytest.raises(ConflictError) as other:
        dispatch.assign_driver(session, d2, placed_order.id, d2.id, d2.name)

    assert own.value.message == "You have already accepted this order"
    assert "another driver" in other.value.message


def test_driver_cannot_touch_another_drivers_order(session, dispatch, actors, placed_order) -> None:
    drive_to(session, dispatch, actors, placed_order.id, S.ASSIGNED)  # assigned to d1
    with pytest.raises(AuthorizationError):
        dispatch.advance_stage(session, actors["d2"], placed_order.id, S.ON_THE_WAY)
    with pytest.raises(AuthorizationError):
        dispatch.return_to_queue(session, actors["d2"], placed_order.id)


def test_client_cannot_dispatch(session, dispatch, actors, placed_order) -> None:
    client = actors["client"]
    with pytest.raises(AuthorizationError):
        dispatch.assign_driver(session, client, placed_order.id, client.id, client.name)


def test_operator_of_another_firm_is_forbidden(session, dispatch, actors, placed_order) -> None:
    outsider = User(id=uuid.uuid4(), name="Other", role=Role.OPERATOR, firm_id=uuid.uuid4())
    session.add(outsider)
    session.commit()

    with pytest.raises(AuthorizationError):
        dispatch.cancel(session, outsider, placed_order.id, "not mine")
    assert stored(session, placed_order.id).status == S.PENDING


def test_other_client_cannot_cancel(session, dispatch, actors, placed_order) -> None:
    stranger = User(id=uuid.uuid4(), name="Stranger", role=Role.CLIENT)
    session.add(stranger)
    session.commit()

    with pytest.raises(AuthorizationError):
        dispatch.cancel(session, stranger, placed_order.id, "prank")


def test_items_and_total_survive_the_lifecycle(session, dispatch, actors, placed_order) -> None:
    drive_to(session, dispatch, actors, placed_order.id, S.DELIVERED)

    items = session.exec(select(OrderItem).where(OrderItem.order_id == placed_order.id)).all()
    assert sorted((i.quantity, i.unit_price) for i in items) == [(1, 10_000), (2, 18_500)]
    assert stored(session, placed_order.id).total == 47_000


def test_every_attempt_lands_on_requested_or_unchanged(session, dispatch, actors, firm_id, order_service) -> None:
    """Result of any attempt is either the requested status or the old one."""
    op, d1 = actors["operator"], actors["d1"]
    operations = {
        S.ASSIGNED: lambda oid: dispatch.assign_driver(session, op, oid, d1.id, d1.name),
        S.ON_THE_WAY: lambda oid: dispatch.advance_stage(session, op, oid, S.ON_THE_WAY),
        S.DELIVERED: lambda oid: dispatch.advance_stage(session, op, oid, S.DELIVERED),
        S.CANCELLED: lambda oid: dispatch.cancel(session, op, oid, "reason"),
        S.PENDING: lambda oid: dispatch.return_to_queue(session, op, oid),
    }
    for source in OrderStatus:
        for requested, operation in operations.items():
            order = order_service.create_order(
                session, actors["client"], make_order_payload(firm_id)
            )
            drive_to(session, dispatch, actors, order.id, source)
            try:
                operation(order.id)
            except ConflictError:
                pass
            assert stored(session, order.id).status in (source, requested)
