# watergo/schemas/user.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel

from watergo.models.user import Role


class UserRead(SQLModel):
    """
    Public profile of the authenticated actor.
    """

    id: uuid.UUID
    name: str
    role: Role
    firm_id: uuid.UUID | None = None
    created_at: datetime
