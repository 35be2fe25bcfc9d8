"""
Common dependencies for FastAPI endpoints.
"""
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from meetpulse.db.session import SessionLocal
from meetpulse.models.user import User
from meetpulse.services.auth import decode_access_token, get_user_by_id
from meetpulse.services.presence import PresenceTracker
from meetpulse.services.realtime import ConnectionManager

# HTTP Bearer token security scheme. Missing credentials are turned into a 401
# below rather than the scheme's own error.
security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is missing or invalid, or the user no longer exists
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    token_data = decode_access_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        raise credentials_exception

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        raise credentials_exception

    user = get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception

    return user


def parse_uuid(value: str, label: str = "ID") -> UUID:
    """Parse a path/query identifier, answering 400 for malformed values."""
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {label}",
        )


def get_presence_tracker(request: Request) -> PresenceTracker:
    """Process-wide presence tracker created in the application lifespan."""
    return request.app.state.presence


def get_connection_manager(request: Request) -> ConnectionManager:
    """Process-wide realtime connection manager created in the application lifespan."""
    return request.app.state.connections
