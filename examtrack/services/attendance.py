# examtrack/services/attendance.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, geo, models, storage
from ..audit import AuditAction
from ..errors import Conflict
from ..models import Attendance, LocationType, Task
from .assignment import require_assignee
from .tasks import get_task

logger = logging.getLogger(__name__)


def target_for(task: Task, location_type: LocationType) -> Tuple[Optional[float], Optional[float]]:
    if location_type == LocationType.PICKUP:
        return task.pickup_latitude, task.pickup_longitude
    return task.destination_latitude, task.destination_longitude


def mark_attendance(
    db: Session,
    task_id: int,
    location_type: LocationType,
    latitude: float,
    longitude: float,
    photo: bytes,
    filename: str | None,
    officer_id: int,
    ip_address: str | None = None,
) -> Attendance:
    """Record a geo-checked check-in.

    Being outside the geofence does not block the check-in; the verdict is
    stored on the record for review.
    """
    task = get_task(db, task_id)
    require_assignee(db, task, officer_id, AuditAction.ATTENDANCE_DENIED_NOT_ASSIGNED, "Attendance", ip_address)

    duplicate_msg = f"Attendance already marked for {location_type.value} location"
    exists = (
        db.query(Attendance.id)
        .filter(Attendance.task_id == task.id, Attendance.location_type == location_type)
        .first()
    )
    if exists:
        audit.record(db, AuditAction.ATTENDANCE_REJECTED_DUPLICATE, "Attendance", task.id, officer_id, ip_address)
        raise Conflict(duplicate_msg)

    distance = None
    within = False
    target_lat, target_lng = target_for(task, location_type)
    if target_lat is not None and target_lng is not None:
        distance = geo.distance_m(latitude, longitude, target_lat, target_lng)
        within = geo.is_within(distance, task.geofence_radius)

    image_hash = storage.sha256_hex(photo)
    server_timestamp = models.utcnow()
    image_url = storage.save_photo(photo, f"attendance/{task.id}", location_type.value, filename)

    record = Attendance(
        task_id=task.id,
        user_id=officer_id,
        location_type=location_type,
        image_url=image_url,
        image_hash=image_hash,
        latitude=latitude,
        longitude=longitude,
        is_within_geofence=within,
        distance_from_target=distance,
        server_timestamp=server_timestamp,
        created_at=server_timestamp,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        storage.discard_photo(image_url)
        audit.record(db, AuditAction.ATTENDANCE_REJECTED_DUPLICATE, "Attendance", task.id, officer_id, ip_address)
        raise Conflict(duplicate_msg) from e
    except Exception:
        db.rollback()
        storage.discard_photo(image_url)
        raise
    db.refresh(record)

    if distance is None:
        logger.info("Officer %s marked %s attendance for task %s (no target set)", officer_id, location_type.value, task.id)
    else:
        logger.info(
            "Officer %s marked %s attendance for task %s: %.2fm, within geofence: %s",
            officer_id, location_type.value, task.id, distance, within,
        )
    audit.record_quietly(
        db, f"{AuditAction.ATTENDANCE_MARKED}: {location_type.value}", "Attendance", record.id, officer_id, ip_address,
    )
    db.refresh(record)
    return record


def list_attendance(db: Session, task_id: int) -> List[Attendance]:
    get_task(db, task_id)
    return (
        db.query(Attendance)
        .filter(Attendance.task_id == task_id)
        .order_by(Attendance.created_at.asc(), Attendance.id.asc())
        .all()
    )
