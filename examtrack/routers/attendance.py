# examtrack/routers/attendance.py
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, storage
from ..deps import client_ip, get_db, require_admin_or_officer, require_officer
from ..models import LocationType
from ..services import attendance as attendance_service

router = APIRouter()


def _distance(value: float | None) -> float | None:
    return round(value, 2) if value is not None else None


@router.post("/tasks/{task_id}/attendance", status_code=status.HTTP_201_CREATED)
def mark_attendance(
    task_id: int,
    request: Request,
    location_type: LocationType = Form(...),
    latitude: float = Form(..., ge=-90, le=90),
    longitude: float = Form(..., ge=-180, le=180),
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    officer: models.User = Depends(require_officer),
):
    content = image.file.read()
    storage.validate_image(image, content)
    record = attendance_service.mark_attendance(
        db,
        task_id,
        location_type,
        latitude,
        longitude,
        content,
        image.filename,
        officer.id,
        client_ip(request),
    )
    if record.is_within_geofence:
        message = "Attendance marked successfully. You are within the designated area."
    else:
        message = "Attendance marked. Note: You are outside the designated area."
    return {
        "success": True,
        "message": message,
        "attendance": {
            "id": record.id,
            "location_type": record.location_type.value,
            "is_within_geofence": record.is_within_geofence,
            "distance_from_target": _distance(record.distance_from_target),
            "timestamp": record.server_timestamp.isoformat(),
        },
    }


@router.get("/tasks/{task_id}/attendance")
def list_attendance(
    task_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin_or_officer),
):
    records = attendance_service.list_attendance(db, task_id)
    return {
        "success": True,
        "attendance": [
            {
                "id": r.id,
                "location_type": r.location_type.value,
                "image_url": r.image_url,
                "image_hash": r.image_hash,
                "latitude": r.latitude,
                "longitude": r.longitude,
                "is_within_geofence": r.is_within_geofence,
                "distance_from_target": _distance(r.distance_from_target),
                "timestamp": r.server_timestamp.isoformat(),
            }
            for r in records
        ],
    }
