"""
User directory endpoints, used to pick meeting participants.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from meetpulse.core.deps import get_current_user, get_db, parse_uuid
from meetpulse.core.exceptions import NotFoundError
from meetpulse.models.user import User
from meetpulse.schemas.auth import UserOut
from meetpulse.services.auth import get_user_by_id

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List all registered users (password hashes are never returned)."""
    users = db.query(User).order_by(User.full_name.asc()).all()
    return [
        UserOut(id=str(user.id), email=user.email, full_name=user.full_name)
        for user in users
    ]


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get a single user."""
    user = get_user_by_id(db, parse_uuid(user_id, "user ID"))
    if user is None:
        raise NotFoundError("User not found")
    return UserOut(id=str(user.id), email=user.email, full_name=user.full_name)
