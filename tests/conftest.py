import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from watergo.core.config import get_settings
from watergo.database import get_session
from watergo.main import app
from watergo.models.user import Role, User
from watergo.repositories.order_repo import OrderRepository
from watergo.schemas.order import AddressSnapshot, OrderCreate, OrderItemCreate
from watergo.services.dispatch_service import DispatchService
from watergo.services.order_service import OrderService


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def firm_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_user(engine):
    def factory(role: Role, firm_id: uuid.UUID | None = None, name: str | None = None) -> User:
        user = User(
            id=uuid.uuid4(),
            name=name or f"{role.value}-user",
            role=role,
            firm_id=firm_id,
        )
        with Session(engine) as s:
            s.add(user)
            s.commit()
            s.refresh(user)
        return user

    return factory


def auth_headers(user: User) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {"sub": str(user.id), "name": user.name},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )
    return {"Authorization": f"Bearer {token}"}


def make_order_payload(firm_id: uuid.UUID, **overrides) -> OrderCreate:
    """Cart snapshot worth 47,000: 2 x 18,500 + 1 x 10,000."""
    data = dict(
        firm_id=firm_id,
        items=[
            OrderItemCreate(
                product_id=uuid.uuid4(),
                product_name="19L water bottle",
                quantity=2,
                unit_price=18_500,
            ),
            OrderItemCreate(
                product_id=uuid.uuid4(),
                product_name="Bottle deposit",
                quantity=1,
                unit_price=10_000,
            ),
        ],
        address=AddressSnapshot(text="Yunusobod 4, 12", latitude=41.36, longitude=69.28),
    )
    data.update(overrides)
    return OrderCreate(**data)


@pytest.fixture
def order_service() -> OrderService:
    return OrderService(OrderRepository())


@pytest.fixture
def dispatch() -> DispatchService:
    return DispatchService(OrderRepository())


@pytest.fixture
def actors(session, firm_id):
    """Client, operator, two drivers and an admin, all in `session`."""
    people = {
        "client": User(id=uuid.uuid4(), name="Aziza", role=Role.CLIENT),
        "operator": User(id=uuid.uuid4(), name="Operator", role=Role.OPERATOR, firm_id=firm_id),
        "d1": User(id=uuid.uuid4(), name="Driver One", role=Role.DRIVER, firm_id=firm_id),
        "d2": User(id=uuid.uuid4(), name="Driver Two", role=Role.DRIVER, firm_id=firm_id),
        "admin": User(id=uuid.uuid4(), name="Admin", role=Role.ADMIN),
    }
    session.add_all(people.values())
    session.commit()
    return people


@pytest.fixture
def placed_order(session, actors, firm_id, order_service):
    return order_service.create_order(session, actors["client"], make_order_payload(firm_id))
