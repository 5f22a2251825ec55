# examtrack/services/locations.py
"""Live officer positions.

One ``AgentCurrentLocation`` row per officer, overwritten on every ping, plus
an opt-in append-only history used for audit replay.
"""
import logging
from typing import List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .. import models
from ..models import AgentCurrentLocation, AgentLocationHistory
from ..schemas import LocationUpdate

logger = logging.getLogger(__name__)

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def upsert_location(
    db: Session,
    officer_id: int,
    task_id: int,
    location: LocationUpdate,
    store_history: bool = False,
) -> None:
    """Create or overwrite the officer's current position; last write wins."""
    values = {
        "task_id": task_id,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "accuracy": location.accuracy,
        "heading": location.heading,
        "speed": location.speed,
        "updated_at": models.utcnow(),
    }
    insert = _INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        raise RuntimeError(f"Unsupported database dialect: {db.get_bind().dialect.name}")

    stmt = insert(AgentCurrentLocation).values(user_id=officer_id, **values)
    stmt = stmt.on_conflict_do_update(index_elements=[AgentCurrentLocation.user_id], set_=values)
    db.execute(stmt)

    if store_history:
        db.add(AgentLocationHistory(
            user_id=officer_id,
            task_id=task_id,
            latitude=location.latitude,
            longitude=location.longitude,
            accuracy=location.accuracy,
            heading=location.heading,
            speed=location.speed,
            recorded_at=models.to_naive_utc(location.recorded_at),
            created_at=models.utcnow(),
        ))
    db.commit()


def clear_location(db: Session, officer_id: int, task_id: int) -> None:
    """Drop the officer's live marker for one task; a missing row is fine."""
    try:
        (
            db.query(AgentCurrentLocation)
            .filter(AgentCurrentLocation.user_id == officer_id, AgentCurrentLocation.task_id == task_id)
            .delete()
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to clear current location for user %s on task %s", officer_id, task_id)


def current_location(db: Session, officer_id: int) -> Optional[AgentCurrentLocation]:
    return db.query(AgentCurrentLocation).filter(AgentCurrentLocation.user_id == officer_id).first()


def current_location_for_task(db: Session, task_id: int) -> Optional[AgentCurrentLocation]:
    return (
        db.query(AgentCurrentLocation)
        .filter(AgentCurrentLocation.task_id == task_id)
        .order_by(AgentCurrentLocation.updated_at.desc())
        .first()
    )


def location_history(db: Session, task_id: int, limit: int = 100) -> List[AgentLocationHistory]:
    return (
        db.query(AgentLocationHistory)
        .filter(AgentLocationHistory.task_id == task_id)
        .order_by(AgentLocationHistory.recorded_at.asc(), AgentLocationHistory.id.asc())
        .limit(limit)
        .all()
    )


def serialize_location(row: Optional[AgentCurrentLocation], agent_name: str | None = None) -> Optional[dict]:
    if row is None:
        return None
    return {
        "agent_id": row.user_id,
        "agent_name": agent_name,
        "task_id": row.task_id,
        "latitude": row.latitude,
        "longitude": row.longitude,
        "accuracy": row.accuracy,
        "heading": row.heading,
        "speed": row.speed,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }
