"""
Authentication API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from meetpulse.core.config import settings
from meetpulse.core.deps import get_current_user, get_db
from meetpulse.core.exceptions import ConflictError
from meetpulse.models.user import User
from meetpulse.schemas.auth import (
    Token,
    UserLogin,
    UserOut,
    UserRegister,
    UserWithToken,
)
from meetpulse.services.audit import AuditAction, TargetType, log_action
from meetpulse.services.auth import (
    authenticate_user,
    create_user,
    create_user_token,
    get_user_by_email,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(user: User) -> UserOut:
    return UserOut(id=str(user.id), email=user.email, full_name=user.full_name)


def _with_token(user: User) -> UserWithToken:
    return UserWithToken(
        user=_user_out(user),
        token=Token(
            access_token=create_user_token(user),
            token_type="bearer",
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # seconds
        ),
    )


@router.post("/register", response_model=UserWithToken, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegister,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Register a new user.

    - **email**: Unique e-mail address
    - **password**: Password (8+ chars with uppercase, lowercase and a digit)
    - **full_name**: Display name shown to other participants

    Returns user info and access token on success.
    """
    if get_user_by_email(db, data.email):
        raise ConflictError("This e-mail address is already registered")

    user = create_user(
        db=db,
        email=data.email,
        password=data.password,
        full_name=data.full_name,
    )

    log_action(
        db=db,
        action=AuditAction.REGISTER,
        user_id=user.id,
        target_type=TargetType.USER,
        target_id=str(user.id),
        details={"email": user.email},
        request=request,
    )

    return _with_token(user)


@router.post("/login", response_model=UserWithToken)
def login(
    data: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Authenticate a user and return an access token.

    - **email**: E-mail address
    - **password**: Password
    """
    user = authenticate_user(db, data.email, data.password)
    if not user:
        log_action(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            target_type=TargetType.USER,
            details={"email": data.email},
            request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid e-mail or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    log_action(
        db=db,
        action=AuditAction.LOGIN,
        user_id=user.id,
        target_type=TargetType.USER,
        target_id=str(user.id),
        request=request,
    )

    return _with_token(user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user."""
    return _user_out(current_user)
