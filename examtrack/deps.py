# examtrack/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .database import SessionLocal
from .errors import Unauthorized
from .models import ADMIN_ROLES, UserRole
from .security import decode_token
from . import models


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def user_from_token(db: Session, token: str) -> models.User:
    """Resolve an active user from a JWT; raises Unauthorized otherwise."""
    payload = decode_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise Unauthorized("Invalid token (bad sub)") from e
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("Account is deactivated")
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> models.User:
    # Mobile and CMS clients send a Bearer header; the cookie is kept for browser sessions.
    token = extract_bearer(request.headers.get("authorization"))
    if not token:
        token = extract_bearer(request.cookies.get("access_token"))
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return user_from_token(db, token)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.detail) from e


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def _checker(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden (insufficient role)")
        return user

    return _checker


require_admin = require_roles(*ADMIN_ROLES)
require_officer = require_roles(UserRole.SEBA_OFFICER)
require_admin_or_officer = require_roles(*ADMIN_ROLES, UserRole.SEBA_OFFICER)
