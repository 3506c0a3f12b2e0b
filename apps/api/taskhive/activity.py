from __future__ import annotations

from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.models import Activity, Notification

ACTIONS = frozenset({"created", "updated", "deleted", "moved", "assigned", "unassigned", "commented", "joined", "left"})
ENTITY_TYPES = frozenset({"task", "comment", "board", "project", "column"})
NOTIFICATION_TYPES = frozenset(
  {
    "task_assigned",
    "task_updated",
    "task_moved",
    "comment_added",
    "mentioned",
    "project_invitation",
    "project_update",
  }
)


def preview(text: str, limit: int = 50) -> str:
  s = text or ""
  return s[:limit] + "..." if len(s) > limit else s


async def write_activity(
  db: AsyncSession,
  *,
  actor_id: str,
  action: str,
  entity_type: str,
  entity_id: str,
  project_id: str,
  board_id: str | None = None,
  data: dict[str, Any] | None = None,
) -> Activity:
  if action not in ACTIONS:
    raise ValueError(f"Unknown activity action: {action}")
  if entity_type not in ENTITY_TYPES:
    raise ValueError(f"Unknown activity entity type: {entity_type}")
  ev = Activity(
    actor_id=actor_id,
    action=action,
    entity_type=entity_type,
    entity_id=str(entity_id),
    project_id=project_id,
    board_id=board_id,
    data=jsonable_encoder(data or {}),
  )
  db.add(ev)
  return ev


async def notify(
  db: AsyncSession,
  *,
  recipient_id: str,
  type: str,
  message: str,
  entity_type: str,
  entity_id: str,
  sender_id: str | None = None,
  project_id: str | None = None,
) -> Notification:
  if type not in NOTIFICATION_TYPES:
    raise ValueError(f"Unknown notification type: {type}")
  n = Notification(
    recipient_id=recipient_id,
    sender_id=sender_id,
    type=type,
    message=message,
    entity_type=entity_type,
    entity_id=str(entity_id),
    project_id=project_id,
  )
  db.add(n)
  return n


async def notify_many(
  db: AsyncSession,
  recipients: Iterable[str],
  *,
  exclude: str | None = None,
  **fields: Any,
) -> list[Notification]:
  """One notification per distinct recipient, skipping ``exclude`` (usually the actor)."""
  out: list[Notification] = []
  seen: set[str] = set()
  for rid in recipients:
    if not rid or rid == exclude or rid in seen:
      continue
    seen.add(rid)
    out.append(await notify(db, recipient_id=rid, **fields))
  return out
