from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.access import require_comment_author, require_task_access
from taskhive.activity import notify, notify_many, preview, write_activity
from taskhive.deps import get_current_user, get_db, origin_connection_id
from taskhive.errors import ValidationError
from taskhive.mentions import resolve_mentions
from taskhive.models import Board, Comment, Task, User
from taskhive.realtime import board_room, schedule_broadcast
from taskhive.schemas import CommentCreateIn, CommentOut, CommentUpdateIn
from taskhive.serializers import comment_out

router = APIRouter(prefix="/comments", tags=["comments"])


def _content(raw: str) -> str:
  s = (raw or "").strip()
  if not s:
    raise ValidationError("Comment content is required")
  return s


async def _notify_mentioned(db: AsyncSession, user_ids: list[str], *, c: Comment, t: Task, b: Board, actor: User) -> None:
  await notify_many(
    db,
    user_ids,
    exclude=actor.id,
    sender_id=actor.id,
    type="mentioned",
    message=f"You were mentioned in a comment on task \"{t.title}\"",
    entity_type="comment",
    entity_id=c.id,
    project_id=b.project_id,
  )


@router.post("", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def create_comment(
  payload: CommentCreateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> CommentOut:
  t, b, _ = await require_task_access(db, payload.taskId, user)
  content = _content(payload.content)
  mentions = await resolve_mentions(db, project_id=b.project_id, content=content)
  c = Comment(task_id=t.id, author_id=user.id, content=content, mentions=mentions)
  db.add(c)
  await db.flush()

  await write_activity(
    db,
    actor_id=user.id,
    action="commented",
    entity_type="comment",
    entity_id=c.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskId": t.id, "taskTitle": t.title, "commentPreview": preview(content)},
  )
  await _notify_mentioned(db, mentions, c=c, t=t, b=b, actor=user)
  if t.created_by != user.id and t.created_by not in mentions:
    await notify(
      db,
      recipient_id=t.created_by,
      sender_id=user.id,
      type="comment_added",
      message=f"New comment on your task \"{t.title}\"",
      entity_type="comment",
      entity_id=c.id,
      project_id=b.project_id,
    )
  await db.commit()
  out = comment_out(c, user)
  schedule_broadcast(background, board_room(b.id), "comment:added", {"boardId": b.id, "taskId": t.id, "comment": out}, exclude=origin)
  return out


@router.get("/task/{task_id}", response_model=list[CommentOut])
async def list_task_comments(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[CommentOut]:
  t, _, _ = await require_task_access(db, task_id, user)
  res = await db.execute(
    select(Comment, User)
    .join(User, User.id == Comment.author_id)
    .where(Comment.task_id == t.id)
    .order_by(Comment.created_at.asc())
  )
  return [comment_out(c, author) for c, author in res.all()]


@router.put("/{comment_id}", response_model=CommentOut)
async def update_comment(
  comment_id: str,
  payload: CommentUpdateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> CommentOut:
  c, t, b, _ = await require_comment_author(db, comment_id, user)
  content = _content(payload.content)
  before = list(c.mentions or [])
  mentions = await resolve_mentions(db, project_id=b.project_id, content=content)
  c.content = content
  c.mentions = mentions
  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="comment",
    entity_id=c.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskId": t.id, "taskTitle": t.title, "commentPreview": preview(content)},
  )
  await _notify_mentioned(db, [u for u in mentions if u not in before], c=c, t=t, b=b, actor=user)
  await db.commit()
  out = comment_out(c, user)
  schedule_broadcast(background, board_room(b.id), "comment:updated", {"boardId": b.id, "taskId": t.id, "comment": out}, exclude=origin)
  return out


@router.delete("/{comment_id}")
async def delete_comment(
  comment_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> dict:
  c, t, b, _ = await require_comment_author(db, comment_id, user, allow_admin=True)
  await db.delete(c)
  await write_activity(
    db,
    actor_id=user.id,
    action="deleted",
    entity_type="comment",
    entity_id=comment_id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskId": t.id, "taskTitle": t.title},
  )
  await db.commit()
  schedule_broadcast(
    background, board_room(b.id), "comment:deleted", {"boardId": b.id, "taskId": t.id, "commentId": comment_id}, exclude=origin
  )
  return {"ok": True}
