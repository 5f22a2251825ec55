import os
import tempfile
from datetime import timedelta

_TMP = tempfile.mkdtemp(prefix="examtrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["LOCATION_MIN_INTERVAL_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from examtrack import models
from examtrack.database import Base, SessionLocal, engine
from examtrack.main import app
from examtrack.models import TaskStatus, UserRole
from examtrack.security import create_access_token, hash_password

PASSWORD = "Secret123!"
_PASSWORD_HASH = hash_password(PASSWORD)

# Guwahati police station -> exam centre
PICKUP = (26.1445, 91.7362)
DESTINATION = (26.1800, 91.7500)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.SEBA_OFFICER, **overrides) -> models.User:
        counter["n"] += 1
        fields = dict(
            name=f"User {counter['n']}",
            phone=f"98{counter['n']:08d}",
            password=_PASSWORD_HASH,
            role=role,
            is_active=True,
            created_at=models.utcnow(),
        )
        fields.update(overrides)
        user = models.User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def officer(make_user):
    return make_user(UserRole.SEBA_OFFICER, name="Officer One")


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Admin One")


@pytest.fixture()
def make_task(db):
    counter = {"n": 0}

    def _make(officer: models.User, **overrides) -> models.Task:
        counter["n"] += 1
        now = models.utcnow()
        fields = dict(
            sealed_pack_code=f"PACK-{counter['n']:04d}",
            source_location="Pan Bazar Police Station",
            destination_location="Cotton University Exam Centre",
            pickup_latitude=PICKUP[0],
            pickup_longitude=PICKUP[1],
            destination_latitude=DESTINATION[0],
            destination_longitude=DESTINATION[1],
            geofence_radius=100,
            assigned_user_id=officer.id,
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=4),
            status=TaskStatus.PENDING,
            created_at=now,
        )
        fields.update(overrides)
        task = models.Task(**fields)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    return _make


def token_for(user: models.User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


def auth_headers(user: models.User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


def photo(content: bytes = b"\xff\xd8\xff\xe0fake-jpeg-bytes", content_type: str = "image/jpeg") -> dict:
    return {"image": ("photo.jpg", content, content_type)}


def audit_actions(db, action: str | None = None) -> list[str]:
    db.expire_all()
    q = db.query(models.AuditLog)
    if action:
        q = q.filter(models.AuditLog.action == action)
    return [row.action for row in q.all()]
