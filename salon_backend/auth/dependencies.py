from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth import jwt_handler
from salon_backend.booking.types import Role
from salon_backend.database import get_db
from salon_backend.models.user import User

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    try:
        claims = jwt_handler.decode_access_token(credentials.credentials)
    except jwt_handler.TokenError as exc:
        raise _unauthorized(exc.detail) from exc

    try:
        user = db.query(User).filter(User.id == claims.subject).first()
        # Profiles imported before the provider account existed are matched by email.
        if user is None and claims.email:
            user = db.query(User).filter(User.email == claims.email).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable. Verify DATABASE_URL and database credentials.",
        ) from exc

    if user is None:
        raise _unauthorized("No salon profile for this account.")
    return user


def role_of(user: User) -> Role:
    return Role.ADMIN if (user.role or "").strip().lower() == Role.ADMIN.value else Role.CLIENT


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if role_of(current_user) is not Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only salon staff can perform this action.",
        )
    return current_user
