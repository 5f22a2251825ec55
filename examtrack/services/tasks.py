# examtrack/services/tasks.py
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import audit, models
from ..audit import AuditAction
from ..errors import BadRequest, Conflict, NotFound
from ..models import Task, TaskStatus, UserRole
from ..schemas import TaskCreate
from ..settings import DEFAULT_GEOFENCE_RADIUS


def create_task(db: Session, data: TaskCreate, admin_id: int, ip_address: str | None = None) -> Task:
    if db.query(Task).filter(Task.sealed_pack_code == data.sealed_pack_code).first():
        raise Conflict(f"Task with sealed pack code '{data.sealed_pack_code}' already exists")

    officer = db.query(models.User).filter(models.User.id == data.assigned_user_id).first()
    if not officer:
        raise NotFound("Assigned user not found")
    if officer.role != UserRole.SEBA_OFFICER:
        raise BadRequest("Tasks can only be assigned to SEBA_OFFICER users")
    if not officer.is_active:
        raise BadRequest("Cannot assign task to an inactive user")

    start_time = models.to_naive_utc(data.start_time)
    end_time = models.to_naive_utc(data.end_time)
    if end_time <= start_time:
        raise BadRequest("End time must be after start time")

    task = Task(
        sealed_pack_code=data.sealed_pack_code,
        source_location=data.source_location,
        destination_location=data.destination_location,
        pickup_latitude=data.pickup_latitude,
        pickup_longitude=data.pickup_longitude,
        destination_latitude=data.destination_latitude,
        destination_longitude=data.destination_longitude,
        geofence_radius=data.geofence_radius if data.geofence_radius is not None else DEFAULT_GEOFENCE_RADIUS,
        assigned_user_id=officer.id,
        start_time=start_time,
        end_time=end_time,
        status=TaskStatus.PENDING,
        exam_type=data.exam_type,
        expected_travel_time=data.expected_travel_time,
        is_double_shift=data.is_double_shift,
        shift_type=data.shift_type,
        created_at=models.utcnow(),
    )
    db.add(task)
    db.commit()
    db.refresh(task)

    audit.record(db, AuditAction.TASK_CREATED, "Task", task.id, admin_id, ip_address)
    db.refresh(task)
    return task


def get_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found")
    return task


def list_tasks(db: Session, status: Optional[TaskStatus] = None) -> List[Task]:
    q = db.query(Task)
    if status:
        q = q.filter(Task.status == status)
    return q.order_by(Task.created_at.desc(), Task.id.desc()).all()


def list_tasks_for_officer(db: Session, officer_id: int) -> List[Task]:
    return (
        db.query(Task)
        .filter(Task.assigned_user_id == officer_id)
        .order_by(Task.created_at.desc(), Task.id.desc())
        .all()
    )


def update_status(
    db: Session,
    task: Task,
    new_status: TaskStatus,
    user_id: int | None,
    ip_address: str | None = None,
) -> Task:
    if task.status == new_status:
        return task
    task.status = new_status
    db.commit()

    if new_status == TaskStatus.SUSPICIOUS:
        action = AuditAction.TASK_MARKED_SUSPICIOUS
    elif new_status == TaskStatus.COMPLETED:
        action = AuditAction.TASK_COMPLETED
    else:
        action = AuditAction.TASK_STATUS_CHANGED
    audit.record(db, action, "Task", task.id, user_id, ip_address)
    return task
