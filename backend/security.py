from typing import Optional

from fastapi import Depends, HTTPException, status

from auth import get_current_user
from models import User


def require_user(user: User = Depends(get_current_user)) -> User:
    return user


def ensure_owner(owner_id: Optional[int], user: User, detail: str) -> None:
    if owner_id is None or owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
