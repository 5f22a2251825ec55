# examtrack/routers/tasks.py
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from .. import models
from ..deps import client_ip, get_db, require_admin, require_officer
from ..errors import Forbidden
from ..models import TaskStatus
from ..schemas import TaskCreate, TaskEventOut, TaskOut
from ..services import events as event_service
from ..services import tasks as task_service

router = APIRouter()


# Admin
@router.post("/admin/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    return task_service.create_task(db, payload, admin.id, client_ip(request))


@router.get("/admin/tasks", response_model=list[TaskOut])
def list_tasks(
    status_filter: TaskStatus | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    return task_service.list_tasks(db, status_filter)


@router.get("/admin/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: int, db: Session = Depends(get_db), _: models.User = Depends(require_admin)):
    return task_service.get_task(db, task_id)


@router.get("/admin/tasks/{task_id}/events", response_model=list[TaskEventOut])
def get_task_events(task_id: int, db: Session = Depends(get_db), _: models.User = Depends(require_admin)):
    task_service.get_task(db, task_id)
    return event_service.list_events(db, task_id)


# Officer
@router.get("/tasks/my", response_model=list[TaskOut])
def my_tasks(db: Session = Depends(get_db), officer: models.User = Depends(require_officer)):
    return task_service.list_tasks_for_officer(db, officer.id)


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_my_task(task_id: int, db: Session = Depends(get_db), officer: models.User = Depends(require_officer)):
    task = task_service.get_task(db, task_id)
    if task.assigned_user_id != officer.id:
        raise Forbidden("You are not assigned to this task")
    return task
