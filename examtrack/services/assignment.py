# examtrack/services/assignment.py
"""Checks that an officer may act on a task right now."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .. import audit, models
from ..audit import AuditAction
from ..errors import Forbidden, InvalidState, NotFound, TooEarly, TrackingError
from ..models import Task, TaskStatus
from ..settings import HISTORY_WINDOW_MINUTES

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


@dataclass
class Assignment:
    task: Task
    store_history: bool = False


@dataclass
class AssignmentCheck:
    valid: bool
    error: Optional[str] = None
    store_history: bool = False


def require_assignee(
    db: Session,
    task: Task,
    officer_id: int,
    denied_action: str,
    entity_type: str,
    ip_address: str | None = None,
    message: str = "You are not assigned to this task",
) -> None:
    """Raise Forbidden for anyone but the task's assignee, leaving an audit row behind."""
    if task.assigned_user_id == officer_id:
        return
    logger.warning("User %s attempted %s on task %s not assigned to them", officer_id, entity_type, task.id)
    audit.record(db, denied_action, entity_type, task.id, officer_id, ip_address)
    raise Forbidden(message)


def in_history_window(task: Task, now: datetime) -> bool:
    return now > task.end_time - timedelta(minutes=HISTORY_WINDOW_MINUTES)


def validate(
    db: Session,
    officer_id: int,
    task_id: int,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> Assignment:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found")

    require_assignee(
        db, task, officer_id,
        AuditAction.LOCATION_DENIED_NOT_ASSIGNED, "AgentLocation", ip_address,
        message="Not assigned to this task",
    )

    if task.status not in ACTIVE_STATUSES:
        raise InvalidState("Task is not active")

    now = now or models.utcnow()
    if now < task.start_time:
        raise TooEarly("Task has not started yet")

    return Assignment(task=task, store_history=in_history_window(task, now))


def check(
    db: Session,
    officer_id: int,
    task_id: int,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> AssignmentCheck:
    try:
        result = validate(db, officer_id, task_id, ip_address=ip_address, now=now)
    except TrackingError as e:
        return AssignmentCheck(valid=False, error=e.detail)
    return AssignmentCheck(valid=True, store_history=result.store_history)
