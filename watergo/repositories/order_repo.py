# watergo/repositories/order_repo.py
import uuid

from sqlalchemy import and_, func, or_
from sqlmodel import Session, select

from watergo.models.order import Order, OrderItem
from watergo.models.status import OrderStatus


class OrderRepository:
    """
    Data access layer for orders and order_items (the order record store).

    NOTE:
      - No commits here; the services own the transaction.
      - Writers must load through get_for_update() so that mutations of
        one order are serialized by the database row lock.
      - There is no update path for items and no delete path at all.
    """

    # ---- Reads ----

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_for_update(self, session: Session, order_id: uuid.UUID) -> Order | None:
        """
        Load an order with a row lock (SELECT ... FOR UPDATE).

        populate_existing makes sure the identity map is overwritten with
        the stored row, so validation always sees the current status.
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return session.exec(stmt).first()

    def get_by_client_request_id(
        self,
        session: Session,
        client_request_id: str,
    ) -> Order | None:
        stmt = select(Order).where(Order.client_request_id == client_request_id)
        return session.exec(stmt).first()

    def list_for_firm(
        self,
        session: Session,
        firm_id: uuid.UUID,
        status: OrderStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).where(Order.firm_id == firm_id)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_for_client(
        self,
        session: Session,
        client_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.client_id == client_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_queued(
        self,
        session: Session,
        firm_id: uuid.UUID,
        limit: int = 50,
    ) -> list[Order]:
        """
        PENDING orders of a firm, oldest first (FIFO).
        """
        stmt = (
            select(Order)
            .where(Order.firm_id == firm_id, Order.status == OrderStatus.PENDING)
            .order_by(Order.created_at.asc(), Order.order_number.asc())
            .limit(limit)
        )
        return session.exec(stmt).all()

    def count_queued_ahead(self, session: Session, order: Order) -> int:
        """
        Number of PENDING orders of the same firm placed before this one.
        """
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(
                Order.firm_id == order.firm_id,
                Order.status == OrderStatus.PENDING,
                Order.id != order.id,
                or_(
                    Order.created_at < order.created_at,
                    and_(
                        Order.created_at == order.created_at,
                        Order.order_number < order.order_number,
                    ),
                ),
            )
        )
        value = session.exec(stmt).one()
        return int(value or 0)

    def max_order_number(self, session: Session, firm_id: uuid.UUID) -> int:
        stmt = select(func.max(Order.order_number)).where(Order.firm_id == firm_id)
        value = session.exec(stmt).one()
        return int(value or 0)

    # ---- Writes ----

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK, surface unique violations early
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items
