# examtrack/routers/tracking.py
"""
Live officer tracking.

/tracking (WebSocket) - JSON frames shaped {"event", "data", "id"}
    - subscribe:task     admins join the room for one task
    - unsubscribe:task   leave that room
    - location:update    officers push a position ping; it is stored and
                         relayed to the task room as location:update

Every frame carrying an "id" is answered with {"event": "ack", "id", "data"}.
Room membership lives in this process only.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Set

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .. import models
from ..database import SessionLocal
from ..deps import extract_bearer, get_db, require_admin, user_from_token
from ..errors import Forbidden, TrackingError, Unauthorized
from ..models import ADMIN_ROLES, UserRole
from ..schemas import LocationUpdate, SubscribeTask
from ..services import assignment
from ..services import locations as location_service
from ..services import tasks as task_service
from ..settings import LOCATION_MIN_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

router = APIRouter()   # REST, mounted under /api
gateway = APIRouter()  # WebSocket, mounted at the root

AUTH_FAILED_CLOSE_CODE = 4001


@dataclass
class SocketUser:
    id: int
    name: str
    role: UserRole


class TrackingHub:
    """Task rooms keyed as ``task:<id>``."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def room_for(task_id: int) -> str:
        return f"task:{task_id}"

    async def join(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._rooms.setdefault(room, set()).add(websocket)

    async def leave(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            members = self._rooms.get(room)
            if members is None:
                return
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    async def leave_all(self, websocket: WebSocket) -> None:
        async with self._lock:
            for room in list(self._rooms):
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]

    def members(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def broadcast(self, room: str, message: dict) -> None:
        async with self._lock:
            targets = list(self._rooms.get(room, ()))

        dead = []
        for ws in targets:
            try:
                await ws.send_json(message)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                members = self._rooms.get(room)
                if members is not None:
                    for ws in dead:
                        members.discard(ws)
                    if not members:
                        del self._rooms[room]


hub = TrackingHub()

# officer id -> monotonic time of the last accepted ping
_last_ping: Dict[int, float] = {}


def _rate_limited(officer_id: int) -> bool:
    if LOCATION_MIN_INTERVAL_SECONDS <= 0:
        return False
    now = time.monotonic()
    last = _last_ping.get(officer_id)
    if last is not None and now - last < LOCATION_MIN_INTERVAL_SECONDS:
        return True
    _last_ping[officer_id] = now
    return False


def _socket_token(websocket: WebSocket) -> Optional[str]:
    return (
        extract_bearer(websocket.headers.get("authorization"))
        or websocket.query_params.get("token")
        or extract_bearer(websocket.cookies.get("access_token"))
    )


def _authenticate(token: str) -> SocketUser:
    db = SessionLocal()
    try:
        user = user_from_token(db, token)
        return SocketUser(id=user.id, name=user.name, role=user.role)
    finally:
        db.close()


def _load_current_location(task_id: int) -> Optional[dict]:
    db = SessionLocal()
    try:
        task_service.get_task(db, task_id)
        row = location_service.current_location_for_task(db, task_id)
        if row is None:
            return None
        agent = db.query(models.User).filter(models.User.id == row.user_id).first()
        return location_service.serialize_location(row, agent.name if agent else None)
    finally:
        db.close()


def _store_location(officer_id: int, update: LocationUpdate, ip_address: Optional[str]) -> None:
    db = SessionLocal()
    try:
        result = assignment.validate(db, officer_id, update.task_id, ip_address=ip_address)
        location_service.upsert_location(
            db, officer_id, update.task_id, update, store_history=result.store_history,
        )
    finally:
        db.close()


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid payload: " + "; ".join(parts)


async def _send_error(websocket: WebSocket, message: str, ack_id=None) -> None:
    frame = {"event": "error", "data": {"message": message}}
    if ack_id is not None:
        frame["id"] = ack_id
    await websocket.send_json(frame)


async def _on_subscribe(websocket: WebSocket, user: SocketUser, ip: Optional[str], data: dict) -> dict:
    if user.role not in ADMIN_ROLES:
        raise Forbidden("Only admins can subscribe to task tracking")
    payload = SubscribeTask.model_validate(data)
    current = await run_in_threadpool(_load_current_location, payload.task_id)
    await hub.join(hub.room_for(payload.task_id), websocket)
    logger.info("User %s subscribed to task %s", user.id, payload.task_id)
    return {"success": True, "current_location": current}


async def _on_unsubscribe(websocket: WebSocket, user: SocketUser, ip: Optional[str], data: dict) -> dict:
    payload = SubscribeTask.model_validate(data)
    await hub.leave(hub.room_for(payload.task_id), websocket)
    return {"success": True}


async def _on_location_update(websocket: WebSocket, user: SocketUser, ip: Optional[str], data: dict) -> dict:
    if user.role != UserRole.SEBA_OFFICER:
        raise Forbidden("Only officers can send location updates")
    update = LocationUpdate.model_validate(data)
    if _rate_limited(user.id):
        return {"success": False, "error": "Too many location updates"}

    await run_in_threadpool(_store_location, user.id, update, ip)

    await hub.broadcast(hub.room_for(update.task_id), {
        "event": "location:update",
        "data": {
            "task_id": update.task_id,
            "agent_id": user.id,
            "agent_name": user.name,
            "latitude": update.latitude,
            "longitude": update.longitude,
            "accuracy": update.accuracy,
            "heading": update.heading,
            "speed": update.speed,
            "timestamp": models.utcnow().isoformat(),
        },
    })
    return {"success": True}


_HANDLERS = {
    "subscribe:task": _on_subscribe,
    "unsubscribe:task": _on_unsubscribe,
    "location:update": _on_location_update,
}


async def _handle_frame(websocket: WebSocket, user: SocketUser, ip: Optional[str], raw: str) -> None:
    try:
        frame = json.loads(raw)
    except ValueError:
        await _send_error(websocket, "Malformed frame: invalid JSON")
        return
    if not isinstance(frame, dict):
        await _send_error(websocket, "Malformed frame: expected an object")
        return

    ack_id = frame.get("id")
    event = frame.get("event")
    data = frame.get("data")
    if data is None:
        data = {}
    handler = _HANDLERS.get(event)
    if handler is None:
        await _send_error(websocket, f"Unknown event: {event}", ack_id)
        return
    if not isinstance(data, dict):
        await _send_error(websocket, "Malformed frame: data must be an object", ack_id)
        return

    try:
        result = await handler(websocket, user, ip, data)
    except ValidationError as e:
        await _send_error(websocket, _describe(e), ack_id)
        return
    except TrackingError as e:
        result = {"success": False, "error": e.detail}

    await websocket.send_json({"event": "ack", "id": ack_id, "data": result})


@gateway.websocket("/tracking")
async def tracking_socket(websocket: WebSocket):
    token = _socket_token(websocket)
    await websocket.accept()
    ip = websocket.client.host if websocket.client else None

    if not token:
        logger.warning("Tracking socket from %s rejected: no token", ip)
        await _send_error(websocket, "Authentication required")
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
        return
    try:
        user = await run_in_threadpool(_authenticate, token)
    except Unauthorized as e:
        logger.warning("Tracking socket from %s rejected: %s", ip, e.detail)
        await _send_error(websocket, e.detail)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
        return

    logger.info("Tracking socket opened for user %s (%s)", user.id, user.role.value)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            if message.get("text") is None:
                await _send_error(websocket, "Malformed frame: expected text")
                continue
            await _handle_frame(websocket, user, ip, message["text"])
    except WebSocketDisconnect:
        logger.info("Tracking socket closed for user %s", user.id)
    finally:
        await hub.leave_all(websocket)


# REST companions for the admin map
@router.get("/admin/tasks/{task_id}/location")
def task_location(task_id: int, db: Session = Depends(get_db), _: models.User = Depends(require_admin)):
    task_service.get_task(db, task_id)
    row = location_service.current_location_for_task(db, task_id)
    agent = None
    if row is not None:
        agent = db.query(models.User).filter(models.User.id == row.user_id).first()
    return {
        "task_id": task_id,
        "current_location": location_service.serialize_location(row, agent.name if agent else None),
    }


@router.get("/admin/tasks/{task_id}/location-history")
def task_location_history(
    task_id: int,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    task_service.get_task(db, task_id)
    rows = location_service.location_history(db, task_id, limit=limit)
    return {
        "task_id": task_id,
        "history": [
            {
                "agent_id": r.user_id,
                "latitude": r.latitude,
                "longitude": r.longitude,
                "accuracy": r.accuracy,
                "heading": r.heading,
                "speed": r.speed,
                "recorded_at": r.recorded_at.isoformat(),
            }
            for r in rows
        ],
    }
