# examtrack/services/events.py
"""Checkpoint events in the sealed-pack custody chain.

Rules enforced here:
  - only the assigned officer may record events for a task
  - each event type occurs at most once per task (unique constraint)
  - a COMPLETED task accepts no further events
  - the timestamp is taken from the server clock, never from the client
  - events are never updated or deleted; there is no code path for it
"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, storage
from ..audit import AuditAction
from ..errors import Conflict, InvalidState
from ..models import EVENT_SEQUENCE, EventType, ShiftType, Task, TaskEvent, TaskStatus
from ..settings import DEFAULT_EXPECTED_TRAVEL_MINUTES
from . import locations
from .assignment import require_assignee
from .tasks import get_task, update_status

logger = logging.getLogger(__name__)

RED_FLAG_TOLERANCE = 1.5  # actual travel may exceed expected by 50%


def record_event(
    db: Session,
    task_id: int,
    event_type: EventType,
    latitude: float,
    longitude: float,
    photo: bytes,
    filename: str | None,
    officer_id: int,
    ip_address: str | None = None,
) -> TaskEvent:
    task = get_task(db, task_id)
    require_assignee(db, task, officer_id, AuditAction.EVENT_UPLOAD_DENIED_NOT_ASSIGNED, "TaskEvent", ip_address)

    if task.status == TaskStatus.COMPLETED:
        audit.record(db, AuditAction.EVENT_REJECTED_TASK_LOCKED, "TaskEvent", task.id, officer_id, ip_address)
        raise InvalidState("Task is already completed. No more events can be recorded.")

    duplicate_msg = f"Event type '{event_type.value}' has already been recorded for this task"
    exists = (
        db.query(TaskEvent.id)
        .filter(TaskEvent.task_id == task.id, TaskEvent.event_type == event_type)
        .first()
    )
    if exists:
        audit.record(db, AuditAction.EVENT_REJECTED_DUPLICATE, "TaskEvent", task.id, officer_id, ip_address)
        raise Conflict(duplicate_msg)

    image_hash = storage.sha256_hex(photo)
    server_timestamp = models.utcnow()
    image_url = storage.save_photo(photo, f"task-events/{task.id}", event_type.value, filename)

    event = TaskEvent(
        task_id=task.id,
        event_type=event_type,
        image_url=image_url,
        image_hash=image_hash,
        latitude=latitude,
        longitude=longitude,
        server_timestamp=server_timestamp,
        created_at=server_timestamp,
    )
    db.add(event)
    try:
        db.commit()
    except IntegrityError as e:
        # a concurrent submission for the same checkpoint committed first
        db.rollback()
        storage.discard_photo(image_url)
        audit.record(db, AuditAction.EVENT_REJECTED_DUPLICATE, "TaskEvent", task.id, officer_id, ip_address)
        raise Conflict(duplicate_msg) from e
    except Exception:
        db.rollback()
        storage.discard_photo(image_url)
        raise
    db.refresh(event)

    logger.info("Officer %s recorded %s for task %s", officer_id, event_type.value, task.id)

    try:
        _apply_status_rules(db, task, event, officer_id, ip_address)
    except Exception:
        # the event itself is committed; a failed status update is reported in the log only
        db.rollback()
        logger.exception("Status rules failed for task %s after %s", task.id, event_type.value)
    audit.record_quietly(db, AuditAction.EVENT_UPLOADED, "TaskEvent", event.id, officer_id, ip_address)
    return event


def _within_window(timestamp: datetime, task: Task) -> bool:
    return task.start_time <= timestamp <= task.end_time


def _apply_status_rules(
    db: Session,
    task: Task,
    event: TaskEvent,
    officer_id: int,
    ip_address: str | None,
) -> None:
    if not _within_window(event.server_timestamp, task):
        logger.warning("Event %s for task %s recorded outside the time window", event.event_type.value, task.id)
        update_status(db, task, TaskStatus.SUSPICIOUS, officer_id, ip_address)
        return

    if event.event_type == EventType.ARRIVAL_EXAM_CENTER:
        _check_travel_time(db, task, event, officer_id, ip_address)

    if event.event_type == EventType.PICKUP_POLICE_STATION and task.status == TaskStatus.PENDING:
        update_status(db, task, TaskStatus.IN_PROGRESS, officer_id, ip_address)
    elif event.event_type == EventType.SUBMISSION_POST_OFFICE:
        update_status(db, task, TaskStatus.COMPLETED, officer_id, ip_address)
        locations.clear_location(db, officer_id, task.id)


def _check_travel_time(
    db: Session,
    task: Task,
    event: TaskEvent,
    officer_id: int,
    ip_address: str | None,
) -> None:
    pickup = (
        db.query(TaskEvent)
        .filter(TaskEvent.task_id == task.id, TaskEvent.event_type == EventType.PICKUP_POLICE_STATION)
        .first()
    )
    if not pickup:
        return

    travel_minutes = (event.server_timestamp - pickup.server_timestamp).total_seconds() / 60
    expected = task.expected_travel_time or DEFAULT_EXPECTED_TRAVEL_MINUTES
    if travel_minutes > expected * RED_FLAG_TOLERANCE:
        logger.warning(
            "Red flag on task %s: travel took %.0f min, expected %s", task.id, travel_minutes, expected,
        )
        update_status(db, task, TaskStatus.SUSPICIOUS, officer_id, ip_address)
        audit.record(db, AuditAction.RED_FLAG_TRAVEL_TIME, "Task", task.id, officer_id, ip_address)


def list_events(db: Session, task_id: int) -> List[TaskEvent]:
    return (
        db.query(TaskEvent)
        .filter(TaskEvent.task_id == task_id)
        .order_by(TaskEvent.server_timestamp.asc(), TaskEvent.id.asc())
        .all()
    )


def allowed_event_types(db: Session, task_id: int) -> List[EventType]:
    """Steps still open for a task, in custody-chain order.

    The afternoon half of a double shift starts at the seal opening.
    This list is guidance for the app; record_event does not enforce order.
    """
    task = get_task(db, task_id)
    recorded = {row.event_type for row in db.query(TaskEvent.event_type).filter(TaskEvent.task_id == task.id)}
    steps = EVENT_SEQUENCE
    if task.is_double_shift and task.shift_type == ShiftType.AFTERNOON:
        steps = EVENT_SEQUENCE[2:]
    return [step for step in steps if step not in recorded]
