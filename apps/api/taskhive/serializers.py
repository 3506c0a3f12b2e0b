from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.models import Activity, Board, Comment, Notification, Project, ProjectMember, Task, User
from taskhive.schemas import (
  ActivityOut,
  BoardOut,
  ColumnOut,
  CommentOut,
  LabelOut,
  MemberOut,
  NotificationOut,
  ProjectOut,
  TaskOut,
  UserOut,
  UserSummaryOut,
)


def user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, role=u.role, avatarUrl=u.avatar_url, createdAt=u.created_at)


def user_summary_out(u: User) -> UserSummaryOut:
  return UserSummaryOut(id=u.id, name=u.name, email=u.email, avatarUrl=u.avatar_url)


def task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    boardId=t.board_id,
    columnId=t.column_id,
    order=t.order_index,
    title=t.title,
    description=t.description,
    assignedTo=list(t.assigned_to or []),
    dueDate=t.due_date,
    labels=[LabelOut(name=l["name"], color=l["color"]) for l in (t.labels or [])],
    createdBy=t.created_by,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def board_out(b: Board, tasks: list[Task] | None = None) -> BoardOut:
  return BoardOut(
    id=b.id,
    projectId=b.project_id,
    title=b.title,
    description=b.description,
    columns=[ColumnOut(id=c["id"], title=c["title"], order=c["order"], taskIds=list(c["taskIds"])) for c in (b.columns or [])],
    columnOrder=list(b.column_order or []),
    version=b.version,
    createdAt=b.created_at,
    updatedAt=b.updated_at,
    tasks=[task_out(t) for t in tasks] if tasks is not None else None,
  )


async def board_with_tasks(db: AsyncSession, b: Board) -> BoardOut:
  res = await db.execute(select(Task).where(Task.board_id == b.id).order_by(Task.column_id, Task.order_index))
  return board_out(b, list(res.scalars().all()))


async def project_out(db: AsyncSession, p: Project) -> ProjectOut:
  res = await db.execute(
    select(ProjectMember, User)
    .join(User, User.id == ProjectMember.user_id)
    .where(ProjectMember.project_id == p.id)
    .order_by(ProjectMember.position.asc())
  )
  members = [MemberOut(userId=m.user_id, role=m.role, name=u.name, email=u.email) for m, u in res.all()]
  return ProjectOut(
    id=p.id,
    name=p.name,
    description=p.description,
    ownerId=p.owner_id,
    members=members,
    createdAt=p.created_at,
    updatedAt=p.updated_at,
  )


def comment_out(c: Comment, author: User | None = None) -> CommentOut:
  return CommentOut(
    id=c.id,
    taskId=c.task_id,
    authorId=c.author_id,
    author=user_summary_out(author) if author else None,
    content=c.content,
    mentions=list(c.mentions or []),
    createdAt=c.created_at,
    updatedAt=c.updated_at,
  )


def activity_out(a: Activity) -> ActivityOut:
  return ActivityOut(
    id=a.id,
    actorId=a.actor_id,
    action=a.action,
    entityType=a.entity_type,
    entityId=a.entity_id,
    projectId=a.project_id,
    boardId=a.board_id,
    data=dict(a.data or {}),
    createdAt=a.created_at,
  )


def notification_out(n: Notification) -> NotificationOut:
  return NotificationOut(
    id=n.id,
    recipientId=n.recipient_id,
    senderId=n.sender_id,
    type=n.type,
    message=n.message,
    entityType=n.entity_type,
    entityId=n.entity_id,
    projectId=n.project_id,
    read=bool(n.read),
    createdAt=n.created_at,
  )
