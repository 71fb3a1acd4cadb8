from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User, UserRole
from app.repositories.user_repository import UserRepository


def create_access_token(user_id: UUID, role: str, ttl_hours: int | None = None) -> str:
    """Issue a bearer token for a user."""
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours or settings.JWT_TTL_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> UUID:
    """Decode a bearer token and return the user id.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
    """
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type")
    return UUID(payload["sub"])


def authenticate_token(token: str | None, db: Session) -> User:
    """Resolve a raw token to a user, raising HTTPException(401) on any failure."""
    if not token:
        raise HTTPException(status_code=401, detail="Access token is required")
    try:
        user_id = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid access token") from None

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Extract the user from the Authorization: Bearer header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header is required")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return authenticate_token(auth_header[7:], db)


def get_stream_user(
    access_token: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Stream connections cannot set headers, so the token travels as a query parameter."""
    return authenticate_token(access_token, db)


def require_super_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=403, detail="Super admin role required")
    return user


def require_restaurant_owner(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.RESTAURANT_OWNER.value:
        raise HTTPException(status_code=403, detail="Restaurant owner role required")
    return user
