# watergo/models/user.py
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field


class Role(str, Enum):
    CLIENT = "client"
    OPERATOR = "operator"
    DRIVER = "driver"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """
    Actor identity mirrored from the auth provider.

    Identity:
      - id: MUST match the token "sub" claim

    Role:
      - client   : places and tracks its own orders
      - operator : runs the console for one firm
      - driver   : delivers orders for one firm
      - admin    : platform staff, unrestricted

    Operators and drivers are attached to a firm by the registration
    workflow; this table only records the link.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches the token subject",
    )

    name: str = Field(
        max_length=80,
        description="Display name",
    )

    role: Role = Field(
        default=Role.CLIENT,
        index=True,
        description="Application role: client | operator | driver | admin",
    )

    firm_id: uuid.UUID | None = Field(
        default=None,
        index=True,
        description="Firm an operator or driver works for",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
