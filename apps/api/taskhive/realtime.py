"""In-process room registry for the realtime socket.

Rooms are plain strings (``board:<id>``, ``project:<id>``). Delivery is
best-effort: a send that fails drops the connection, and nothing is queued for
clients that are not connected.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from fastapi import BackgroundTasks
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger("taskhive.ws")


class Socket(Protocol):
  async def accept(self) -> None: ...

  async def send_json(self, data: Any) -> None: ...


def board_room(board_id: str) -> str:
  return f"board:{board_id}"


def project_room(project_id: str) -> str:
  return f"project:{project_id}"


@dataclass
class Connection:
  id: str
  user_id: str
  user_name: str
  socket: Socket
  rooms: set[str] = field(default_factory=set)


class RoomManager:
  def __init__(self) -> None:
    self._connections: dict[str, Connection] = {}
    self._rooms: dict[str, set[str]] = {}

  async def connect(self, socket: Socket, *, user_id: str, user_name: str = "") -> Connection:
    await socket.accept()
    conn = Connection(id=str(uuid.uuid4()), user_id=user_id, user_name=user_name, socket=socket)
    self._connections[conn.id] = conn
    logger.info("ws connected conn=%s user=%s", conn.id[:8], user_id[:8])
    return conn

  def disconnect(self, conn_id: str) -> None:
    conn = self._connections.pop(conn_id, None)
    if not conn:
      return
    for room in list(conn.rooms):
      self._drop_from_room(conn_id, room)
    logger.info("ws disconnected conn=%s user=%s", conn_id[:8], conn.user_id[:8])

  def join(self, conn_id: str, room: str) -> None:
    conn = self._connections.get(conn_id)
    if not conn:
      return
    conn.rooms.add(room)
    self._rooms.setdefault(room, set()).add(conn_id)
    logger.info("ws join conn=%s room=%s", conn_id[:8], room)

  def leave(self, conn_id: str, room: str) -> None:
    conn = self._connections.get(conn_id)
    if conn:
      conn.rooms.discard(room)
    self._drop_from_room(conn_id, room)

  def _drop_from_room(self, conn_id: str, room: str) -> None:
    members = self._rooms.get(room)
    if members is None:
      return
    members.discard(conn_id)
    if not members:
      del self._rooms[room]

  def members(self, room: str) -> set[str]:
    return set(self._rooms.get(room, set()))

  def online_users(self) -> list[dict[str, str]]:
    seen: dict[str, dict[str, str]] = {}
    for conn in self._connections.values():
      seen.setdefault(conn.user_id, {"id": conn.user_id, "name": conn.user_name})
    return list(seen.values())

  async def send(self, conn_id: str, event: str, data: Any) -> bool:
    conn = self._connections.get(conn_id)
    if not conn:
      return False
    try:
      await conn.socket.send_json({"event": event, "data": jsonable_encoder(data)})
      return True
    except Exception as exc:
      logger.warning("ws send failed conn=%s event=%s: %s", conn_id[:8], event, exc)
      self.disconnect(conn_id)
      return False

  async def broadcast(self, room: str, event: str, data: Any, *, exclude: str | None = None) -> int:
    sent = 0
    for conn_id in sorted(self.members(room)):
      if conn_id == exclude:
        continue
      if await self.send(conn_id, event, data):
        sent += 1
    return sent

  async def broadcast_all(self, event: str, data: Any, *, exclude: str | None = None) -> int:
    sent = 0
    for conn_id in list(self._connections):
      if conn_id == exclude:
        continue
      if await self.send(conn_id, event, data):
        sent += 1
    return sent

  def stats(self) -> dict[str, int]:
    return {"connections": len(self._connections), "rooms": len(self._rooms), "users": len(self.online_users())}


rooms = RoomManager()


def schedule_broadcast(
  background: BackgroundTasks,
  room: str,
  event: str,
  data: Any,
  *,
  exclude: str | None = None,
) -> None:
  """Queue a room broadcast to run after the response has been sent."""
  background.add_task(rooms.broadcast, room, event, data, exclude=exclude)
