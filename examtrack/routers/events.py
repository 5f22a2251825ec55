# examtrack/routers/events.py
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, storage
from ..deps import client_ip, get_db, require_admin_or_officer, require_officer
from ..errors import Forbidden
from ..models import ADMIN_ROLES, EventType
from ..schemas import TaskEventOut
from ..services import events as event_service
from ..services import tasks as task_service

router = APIRouter()


@router.post("/tasks/{task_id}/events", response_model=TaskEventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    task_id: int,
    request: Request,
    event_type: EventType = Form(...),
    latitude: float = Form(..., ge=-90, le=90),
    longitude: float = Form(..., ge=-180, le=180),
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    officer: models.User = Depends(require_officer),
):
    # No timestamp field is read from the form; the server clock stamps the event.
    content = image.file.read()
    storage.validate_image(image, content)
    return event_service.record_event(
        db,
        task_id,
        event_type,
        latitude,
        longitude,
        content,
        image.filename,
        officer.id,
        client_ip(request),
    )


@router.get("/tasks/{task_id}/events", response_model=list[TaskEventOut])
def list_events(
    task_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin_or_officer),
):
    task = task_service.get_task(db, task_id)
    if user.role not in ADMIN_ROLES and task.assigned_user_id != user.id:
        raise Forbidden("You are not assigned to this task")
    return event_service.list_events(db, task_id)


@router.get("/tasks/{task_id}/events/allowed")
def allowed_events(
    task_id: int,
    db: Session = Depends(get_db),
    officer: models.User = Depends(require_officer),
):
    task = task_service.get_task(db, task_id)
    if task.assigned_user_id != officer.id:
        raise Forbidden("You are not assigned to this task")
    return {"task_id": task_id, "allowed": [t.value for t in event_service.allowed_event_types(db, task_id)]}
