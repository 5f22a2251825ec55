# examtrack/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from .models import EventType, ExamType, ShiftType, TaskStatus, UserRole


class LoginRequest(BaseModel):
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    password: str = Field(min_length=1)
    device_id: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @model_validator(mode="after")
    def _phone_or_email(self):
        if not self.phone and not self.email:
            raise ValueError("Either phone or email is required")
        return self


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    phone: str = Field(pattern=r"^[+]?[\d\s-]{10,15}$")
    email: Optional[EmailStr] = None
    password: str = Field(min_length=8, max_length=64)
    role: UserRole = UserRole.SEBA_OFFICER


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str
    email: Optional[str]
    role: UserRole
    is_active: bool
    device_id: Optional[str] = None


class TaskCreate(BaseModel):
    sealed_pack_code: str = Field(min_length=1, max_length=100)
    source_location: str = Field(min_length=1)
    destination_location: str = Field(min_length=1)
    pickup_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    destination_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    destination_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    geofence_radius: Optional[int] = Field(default=None, ge=0)
    assigned_user_id: int
    start_time: datetime
    end_time: datetime
    exam_type: ExamType = ExamType.REGULAR
    expected_travel_time: Optional[int] = Field(default=None, gt=0)
    is_double_shift: bool = False
    shift_type: Optional[ShiftType] = None


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sealed_pack_code: str
    source_location: str
    destination_location: str
    pickup_latitude: Optional[float]
    pickup_longitude: Optional[float]
    destination_latitude: Optional[float]
    destination_longitude: Optional[float]
    geofence_radius: int
    assigned_user_id: int
    start_time: datetime
    end_time: datetime
    status: TaskStatus
    exam_type: ExamType
    expected_travel_time: Optional[int]
    is_double_shift: bool
    shift_type: Optional[ShiftType]
    created_at: datetime


class TaskEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    event_type: EventType
    image_url: str
    image_hash: str
    latitude: float
    longitude: float
    server_timestamp: datetime


class LocationUpdate(BaseModel):
    """Position ping pushed by an officer over the tracking socket."""

    task_id: int
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, gt=0)
    heading: Optional[float] = Field(default=None, ge=0, le=360)
    speed: Optional[float] = Field(default=None, ge=0)
    recorded_at: datetime


class SubscribeTask(BaseModel):
    task_id: int


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int]
    action: str
    entity_type: str
    entity_id: Optional[int]
    ip_address: Optional[str]
    created_at: datetime

