# examtrack/models.py
from sqlalchemy import (
    Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from datetime import datetime, timezone
import enum

from .database import Base
from .settings import DEFAULT_GEOFENCE_RADIUS


def utcnow() -> datetime:
    """Naive UTC now; every server-side timestamp goes through here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    SEBA_OFFICER = "SEBA_OFFICER"
    CENTER_SUPERINTENDENT = "CENTER_SUPERINTENDENT"


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)


class TaskStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SUSPICIOUS = "SUSPICIOUS"


class ExamType(str, enum.Enum):
    REGULAR = "REGULAR"
    COMPARTMENTAL = "COMPARTMENTAL"


class ShiftType(str, enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


class EventType(str, enum.Enum):
    PICKUP_POLICE_STATION = "PICKUP_POLICE_STATION"
    ARRIVAL_EXAM_CENTER = "ARRIVAL_EXAM_CENTER"
    OPENING_SEAL = "OPENING_SEAL"
    SEALING_ANSWER_SHEETS = "SEALING_ANSWER_SHEETS"
    SUBMISSION_POST_OFFICE = "SUBMISSION_POST_OFFICE"


# custody chain order
EVENT_SEQUENCE = [
    EventType.PICKUP_POLICE_STATION,
    EventType.ARRIVAL_EXAM_CENTER,
    EventType.OPENING_SEAL,
    EventType.SEALING_ANSWER_SHEETS,
    EventType.SUBMISSION_POST_OFFICE,
]


class LocationType(str, enum.Enum):
    PICKUP = "PICKUP"
    DESTINATION = "DESTINATION"


class User(Base):
    __tablename__ = "users"
    id        = Column(Integer, primary_key=True, index=True)
    name      = Column(String(255), nullable=False)
    phone     = Column(String(20), unique=True, index=True, nullable=False)
    email     = Column(String(255), unique=True, index=True, nullable=True)
    password  = Column(String(255), nullable=False)  # hash
    role      = Column(Enum(UserRole, native_enum=False, length=32), nullable=False, default=UserRole.SEBA_OFFICER)
    is_active = Column(Boolean, nullable=False, default=True)
    device_id = Column(String(255), nullable=True)  # bound on first officer login
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Task(Base):
    __tablename__ = "tasks"
    id                    = Column(Integer, primary_key=True, index=True)
    sealed_pack_code      = Column(String(100), unique=True, index=True, nullable=False)
    source_location       = Column(Text, nullable=False)
    destination_location  = Column(Text, nullable=False)
    pickup_latitude       = Column(Float, nullable=True)
    pickup_longitude      = Column(Float, nullable=True)
    destination_latitude  = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)
    geofence_radius       = Column(Integer, nullable=False, default=DEFAULT_GEOFENCE_RADIUS)  # meters
    assigned_user_id      = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    start_time            = Column(DateTime, nullable=False)
    end_time              = Column(DateTime, nullable=False)
    status                = Column(Enum(TaskStatus, native_enum=False, length=32), nullable=False, default=TaskStatus.PENDING)
    exam_type             = Column(Enum(ExamType, native_enum=False, length=32), nullable=False, default=ExamType.REGULAR)
    expected_travel_time  = Column(Integer, nullable=True)  # minutes, pickup -> exam center
    is_double_shift       = Column(Boolean, nullable=False, default=False)
    shift_type            = Column(Enum(ShiftType, native_enum=False, length=20), nullable=True)
    created_at            = Column(DateTime, nullable=False, default=utcnow)


class TaskEvent(Base):
    __tablename__ = "task_events"
    id               = Column(Integer, primary_key=True, index=True)
    task_id          = Column(Integer, ForeignKey("tasks.id"), index=True, nullable=False)
    event_type       = Column(Enum(EventType, native_enum=False, length=40), nullable=False)
    image_url        = Column(Text, nullable=False)
    image_hash       = Column(String(64), nullable=False)  # sha256 hex
    latitude         = Column(Float, nullable=False)
    longitude        = Column(Float, nullable=False)
    server_timestamp = Column(DateTime, nullable=False)
    created_at       = Column(DateTime, nullable=False, default=utcnow)
    __table_args__ = (
        UniqueConstraint("task_id", "event_type", name="uq_task_events_task_event_type"),
    )


class Attendance(Base):
    __tablename__ = "attendances"
    id                   = Column(Integer, primary_key=True, index=True)
    task_id              = Column(Integer, ForeignKey("tasks.id"), index=True, nullable=False)
    user_id              = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    location_type        = Column(Enum(LocationType, native_enum=False, length=20), nullable=False)
    image_url            = Column(Text, nullable=False)
    image_hash           = Column(String(64), nullable=False)
    latitude             = Column(Float, nullable=False)
    longitude            = Column(Float, nullable=False)
    is_within_geofence   = Column(Boolean, nullable=False, default=False)
    distance_from_target = Column(Float, nullable=True)  # meters; null when the task has no target
    server_timestamp     = Column(DateTime, nullable=False)
    created_at           = Column(DateTime, nullable=False, default=utcnow)
    __table_args__ = (
        UniqueConstraint("task_id", "location_type", name="uq_attendances_task_location_type"),
    )


class AgentCurrentLocation(Base):
    __tablename__ = "agent_current_locations"
    id         = Column(Integer, primary_key=True, index=True)
    user_id    = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    task_id    = Column(Integer, ForeignKey("tasks.id"), index=True, nullable=False)
    latitude   = Column(Float, nullable=False)
    longitude  = Column(Float, nullable=False)
    accuracy   = Column(Float, nullable=True)
    heading    = Column(Float, nullable=True)
    speed      = Column(Float, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class AgentLocationHistory(Base):
    __tablename__ = "agent_location_history"
    id          = Column(Integer, primary_key=True, index=True)
    user_id     = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    task_id     = Column(Integer, ForeignKey("tasks.id"), index=True, nullable=False)
    latitude    = Column(Float, nullable=False)
    longitude   = Column(Float, nullable=False)
    accuracy    = Column(Float, nullable=True)
    heading     = Column(Float, nullable=True)
    speed       = Column(Float, nullable=True)
    recorded_at = Column(DateTime, index=True, nullable=False)  # device clock
    created_at  = Column(DateTime, nullable=False, default=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id          = Column(Integer, primary_key=True, index=True)
    user_id     = Column(Integer, index=True, nullable=True)
    action      = Column(String(100), index=True, nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id   = Column(Integer, nullable=True)
    ip_address  = Column(String(45), nullable=True)
    created_at  = Column(DateTime, nullable=False, default=utcnow)
