# examtrack/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .. import audit, models
from ..audit import AuditAction
from ..deps import client_ip, get_current_user, get_db, require_admin
from ..models import UserRole
from ..schemas import LoginRequest, UserCreate, UserOut
from ..security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


def _find_login_user(db: Session, payload: LoginRequest) -> models.User | None:
    q = db.query(models.User)
    if payload.phone:
        return q.filter(models.User.phone == payload.phone.strip()).first()
    return q.filter(models.User.email == str(payload.email).lower()).first()


def _check_device(db: Session, user: models.User, device_id: str | None, ip: str | None) -> None:
    # Officers are bound to the first device they sign in from.
    if not device_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="device_id is required for SEBA_OFFICER users")
    if not user.device_id:
        user.device_id = device_id
        db.commit()
        audit.record(db, AuditAction.DEVICE_ID_BOUND, "User", user.id, user.id, ip)
        return
    if user.device_id != device_id:
        logger.warning("Device mismatch for user %s from %s", user.id, ip)
        audit.record(db, AuditAction.DEVICE_ID_MISMATCH, "User", user.id, user.id, ip)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Device ID mismatch. This account is bound to a different device.",
        )


@router.post("/auth/login")
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    ip = client_ip(request)
    user = _find_login_user(db, payload)
    if not user or not verify_password(payload.password, user.password):
        audit.record(db, AuditAction.USER_LOGIN_FAILED, "User", user.id if user else None, None, ip)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        audit.record(db, AuditAction.USER_LOGIN_FAILED, "User", user.id, user.id, ip)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    if user.role == UserRole.SEBA_OFFICER:
        _check_device(db, user, payload.device_id, ip)

    token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
    audit.record(db, AuditAction.USER_LOGIN, "User", user.id, user.id, ip)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": {"id": user.id, "name": user.name, "phone": user.phone, "role": user.role.value},
    }


@router.get("/auth/me", response_model=UserOut)
def me(user: models.User = Depends(get_current_user)):
    return user


# Users admin (prefix becomes /api/admin/...)
@router.get("/admin/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db), _: models.User = Depends(require_admin)):
    return db.query(models.User).order_by(models.User.id.asc()).all()


@router.post("/admin/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if payload.role == UserRole.SUPER_ADMIN and admin.role != UserRole.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only SUPER_ADMIN can create SUPER_ADMIN users")
    if db.query(models.User).filter(models.User.phone == payload.phone).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Phone already registered")
    email = str(payload.email).lower() if payload.email else None
    if email and db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = models.User(
        name=payload.name,
        phone=payload.phone,
        email=email,
        password=hash_password(payload.password),
        role=payload.role,
        is_active=True,
        created_at=models.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    audit.record(db, AuditAction.USER_CREATED, "User", user.id, admin.id, client_ip(request))
    db.refresh(user)
    return user


@router.post("/admin/users/{user_id}/reset-device", response_model=UserOut)
def reset_device(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.device_id = None
    db.commit()
    audit.record(db, AuditAction.DEVICE_ID_RESET, "User", user.id, admin.id, client_ip(request))
    db.refresh(user)
    return user
