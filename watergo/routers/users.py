# watergo/routers/users.py
from fastapi import APIRouter, Depends

from watergo.core.auth import get_current_user
from watergo.models.user import User
from watergo.schemas.user import UserRead

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    """
    Return the authenticated actor's profile (role and firm included).
    """
    return current_user
