# examtrack/audit.py
"""Append-only audit trail.

Rows are only ever inserted; nothing in the codebase updates or deletes them.
"""
import logging

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


class AuditAction:
    USER_LOGIN = "USER_LOGIN"
    USER_LOGIN_FAILED = "USER_LOGIN_FAILED"
    USER_CREATED = "USER_CREATED"
    DEVICE_ID_BOUND = "DEVICE_ID_BOUND"
    DEVICE_ID_MISMATCH = "DEVICE_ID_MISMATCH"
    DEVICE_ID_RESET = "DEVICE_ID_RESET"
    TASK_CREATED = "TASK_CREATED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_MARKED_SUSPICIOUS = "TASK_MARKED_SUSPICIOUS"
    TASK_COMPLETED = "TASK_COMPLETED"
    EVENT_UPLOADED = "EVENT_UPLOADED"
    EVENT_UPLOAD_DENIED_NOT_ASSIGNED = "EVENT_UPLOAD_DENIED_NOT_ASSIGNED"
    EVENT_REJECTED_DUPLICATE = "EVENT_REJECTED_DUPLICATE"
    EVENT_REJECTED_TASK_LOCKED = "EVENT_REJECTED_TASK_LOCKED"
    ATTENDANCE_MARKED = "ATTENDANCE_MARKED"
    ATTENDANCE_DENIED_NOT_ASSIGNED = "ATTENDANCE_DENIED_NOT_ASSIGNED"
    ATTENDANCE_REJECTED_DUPLICATE = "ATTENDANCE_REJECTED_DUPLICATE"
    LOCATION_DENIED_NOT_ASSIGNED = "LOCATION_DENIED_NOT_ASSIGNED"
    RED_FLAG_TRAVEL_TIME = "RED_FLAG_TRAVEL_TIME"


def record(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> models.AuditLog:
    """Append an audit row and commit it immediately.

    Committing here keeps denial records even when the caller goes on to
    raise and the request fails.
    """
    row = models.AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        ip_address=ip_address,
        created_at=models.utcnow(),
    )
    db.add(row)
    db.commit()
    return row


def record_quietly(db: Session, *args, **kwargs) -> None:
    try:
        record(db, *args, **kwargs)
    except Exception:
        db.rollback()
        logger.exception("Audit write failed for %s", args[0] if args else kwargs.get("action"))
