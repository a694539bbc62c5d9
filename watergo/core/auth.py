# watergo/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from watergo.core.config import get_settings
from watergo.database import get_session
from watergo.models.user import Role, User

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => we raise our own 401 with a consistent message
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token (JWT).

    Verification:
      - signature (JWT_SECRET / JWT_ALG)
      - expiration time (exp), when present
      - audience is NOT verified

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """
    Resolve the calling actor from a bearer JWT.

    Flow:
      1. Missing Authorization header => 401.
      2. Decode JWT => extract 'sub' and optional 'name'.
      3. Find the user row.
      4. If missing, auto-provision a client profile. Operators and
         drivers are created by the firm registration workflow.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    user = session.get(User, sub_uuid)

    if user is None:
        user = User(
            id=sub_uuid,
            name=payload.get("name") or "Client",
            role=Role.CLIENT,
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def require_roles(*roles: Role):
    """
    Build a dependency that only lets the given roles through.

    Usage:
        @router.get("/x", dependencies=[Depends(require_roles(Role.ADMIN))])
    """

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role not permitted for this operation",
            )
        return user

    return dependency


require_client = require_roles(Role.CLIENT)
require_driver = require_roles(Role.DRIVER)
require_staff = require_roles(Role.OPERATOR, Role.ADMIN)
