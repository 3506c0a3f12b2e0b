from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import select

from taskhive.access import require_board_access, require_project_member
from taskhive.db import SessionLocal
from taskhive.deps import get_current_user
from taskhive.errors import DomainError
from taskhive.models import User
from taskhive.realtime import Connection, board_room, project_room, rooms
from taskhive.security import InvalidTokenError, bearer_token, decode_access_token

router = APIRouter(tags=["realtime"])
logger = logging.getLogger("taskhive.ws")

AUTH_FAILED_CODE = 4001

# client event -> event re-emitted to the rest of the board room
RELAY_EVENTS = {
  "task:update": "task:updated",
  "task:move": "task:moved",
  "comment:new": "comment:added",
}


async def _authenticate(websocket: WebSocket, token: str | None) -> User | None:
  tok = token or bearer_token(websocket.headers.get("authorization"))
  try:
    user_id = decode_access_token(tok or "")
  except InvalidTokenError:
    return None
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


def _entity_id(data: Any) -> str:
  if isinstance(data, dict):
    data = data.get("id") or data.get("boardId") or data.get("projectId")
  return str(data or "").strip()


async def _join(conn: Connection, user: User, event: str, data: Any) -> None:
  kind = event.split(":", 1)[1]
  entity_id = _entity_id(data)
  try:
    async with SessionLocal() as db:
      if kind == "board":
        await require_board_access(db, entity_id, user)
      else:
        await require_project_member(db, entity_id, user)
  except DomainError as exc:
    await rooms.send(conn.id, "error", {"event": event, "message": exc.message})
    return
  room = board_room(entity_id) if kind == "board" else project_room(entity_id)
  rooms.join(conn.id, room)
  await rooms.send(conn.id, "joined", {"room": room})


async def _leave(conn: Connection, event: str, data: Any) -> None:
  kind = event.split(":", 1)[1]
  entity_id = _entity_id(data)
  room = board_room(entity_id) if kind == "board" else project_room(entity_id)
  rooms.leave(conn.id, room)
  await rooms.send(conn.id, "left", {"room": room})


async def _relay(conn: Connection, event: str, data: Any) -> None:
  board_id = str(data.get("boardId") or "") if isinstance(data, dict) else ""
  if not board_id:
    await rooms.send(conn.id, "error", {"event": event, "message": "boardId is required"})
    return
  room = board_room(board_id)
  if room not in conn.rooms:
    await rooms.send(conn.id, "error", {"event": event, "message": "Join the board before sending updates"})
    return
  await rooms.broadcast(room, RELAY_EVENTS[event], {**data, "userId": conn.user_id}, exclude=conn.id)


async def handle_message(conn: Connection, user: User, msg: Any) -> None:
  if not isinstance(msg, dict) or not isinstance(msg.get("event"), str):
    await rooms.send(conn.id, "error", {"message": "Messages must look like {\"event\": ..., \"data\": ...}"})
    return
  event = msg["event"]
  data = msg.get("data")

  if event == "ping":
    await rooms.send(conn.id, "pong", {})
  elif event in {"join:board", "join:project"}:
    await _join(conn, user, event, data)
  elif event in {"leave:board", "leave:project"}:
    await _leave(conn, event, data)
  elif event in RELAY_EVENTS:
    await _relay(conn, event, data)
  else:
    await rooms.send(conn.id, "error", {"event": event, "message": "Unknown event"})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
  user = await _authenticate(websocket, token)
  if not user:
    logger.info("ws rejected: authentication failed")
    # a close code is only delivered after accept
    await websocket.accept()
    await websocket.close(code=AUTH_FAILED_CODE, reason="Authentication failed")
    return

  conn = await rooms.connect(websocket, user_id=user.id, user_name=user.name)
  await rooms.send(conn.id, "connected", {"connectionId": conn.id, "userId": user.id})
  await rooms.broadcast_all("users:online", rooms.online_users())
  try:
    while True:
      message = await websocket.receive()
      if message["type"] == "websocket.disconnect":
        break
      raw = message.get("text")
      if raw is None:
        logger.info("ws binary frame ignored conn=%s", conn.id[:8])
        await rooms.send(conn.id, "error", {"message": "Binary frames are not supported"})
        continue
      try:
        msg = json.loads(raw)
      except ValueError:
        msg = None
      await handle_message(conn, user, msg)
  except WebSocketDisconnect:
    pass
  finally:
    rooms.disconnect(conn.id)
    await rooms.broadcast_all("users:online", rooms.online_users())


@router.get("/ws/stats")
async def realtime_stats(user: User = Depends(get_current_user)) -> dict:
  return rooms.stats()
