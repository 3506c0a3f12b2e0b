from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.access import valid_id
from taskhive.deps import get_current_user, get_db
from taskhive.errors import NotFoundError
from taskhive.models import Notification, User
from taskhive.schemas import NotificationOut
from taskhive.serializers import notification_out

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
  unreadOnly: bool = False,
  limit: int = 50,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[NotificationOut]:
  limit = max(1, min(int(limit), 200))
  q = select(Notification).where(Notification.recipient_id == actor.id)
  if unreadOnly:
    q = q.where(Notification.read.is_(False))
  res = await db.execute(q.order_by(Notification.created_at.desc()).limit(limit))
  return [notification_out(n) for n in res.scalars().all()]


@router.put("/read-all")
async def mark_all_read(actor: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(
    update(Notification)
    .where(Notification.recipient_id == actor.id, Notification.read.is_(False))
    .values(read=True)
  )
  await db.commit()
  return {"ok": True, "updated": int(res.rowcount or 0)}


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
  notification_id: str,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> NotificationOut:
  if not valid_id(notification_id):
    raise NotFoundError("Notification not found")
  res = await db.execute(
    select(Notification).where(Notification.id == notification_id, Notification.recipient_id == actor.id)
  )
  n = res.scalar_one_or_none()
  if not n:
    raise NotFoundError("Notification not found")
  n.read = True
  await db.commit()
  return notification_out(n)
