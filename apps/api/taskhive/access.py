"""Per-request access checks.

Every check resolves the owning project first (comment -> task -> board -> project)
and only then looks at membership. A missing link is ``NotFoundError``; a
resolved chain with insufficient membership is ``ForbiddenError``.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.errors import ForbiddenError, NotFoundError
from taskhive.models import Board, Comment, Project, ProjectMember, Task, User

ADMIN_ROLES = frozenset({"owner", "admin"})


@dataclass
class ProjectAccess:
  project: Project
  role: str

  @property
  def is_admin(self) -> bool:
    return self.role in ADMIN_ROLES


def valid_id(value: str | None) -> bool:
  try:
    uuid.UUID(str(value))
    return True
  except (TypeError, ValueError):
    return False


async def get_project(db: AsyncSession, project_id: str) -> Project:
  if not valid_id(project_id):
    raise NotFoundError("Project not found")
  res = await db.execute(select(Project).where(Project.id == project_id))
  p = res.scalar_one_or_none()
  if not p:
    raise NotFoundError("Project not found")
  return p


async def get_board(db: AsyncSession, board_id: str) -> Board:
  if not valid_id(board_id):
    raise NotFoundError("Board not found")
  res = await db.execute(select(Board).where(Board.id == board_id))
  b = res.scalar_one_or_none()
  if not b:
    raise NotFoundError("Board not found")
  return b


async def get_task(db: AsyncSession, task_id: str) -> Task:
  if not valid_id(task_id):
    raise NotFoundError("Task not found")
  res = await db.execute(select(Task).where(Task.id == task_id))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFoundError("Task not found")
  return t


async def get_comment(db: AsyncSession, comment_id: str) -> Comment:
  if not valid_id(comment_id):
    raise NotFoundError("Comment not found")
  res = await db.execute(select(Comment).where(Comment.id == comment_id))
  c = res.scalar_one_or_none()
  if not c:
    raise NotFoundError("Comment not found")
  return c


async def member_role(db: AsyncSession, project_id: str, user_id: str) -> str | None:
  res = await db.execute(
    select(ProjectMember.role).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
  )
  return res.scalar_one_or_none()


async def require_project_member(db: AsyncSession, project_id: str, user: User) -> ProjectAccess:
  project = await get_project(db, project_id)
  role = await member_role(db, project.id, user.id)
  if role is None:
    raise ForbiddenError("Not authorized to access this project")
  return ProjectAccess(project=project, role=role)


async def require_project_admin(db: AsyncSession, project_id: str, user: User) -> ProjectAccess:
  access = await require_project_member(db, project_id, user)
  if not access.is_admin:
    raise ForbiddenError("Not authorized to perform this action")
  return access


async def require_board_access(db: AsyncSession, board_id: str, user: User, *, admin: bool = False) -> tuple[Board, ProjectAccess]:
  board = await get_board(db, board_id)
  check = require_project_admin if admin else require_project_member
  access = await check(db, board.project_id, user)
  return board, access


async def require_task_access(db: AsyncSession, task_id: str, user: User) -> tuple[Task, Board, ProjectAccess]:
  task = await get_task(db, task_id)
  board = await get_board(db, task.board_id)
  access = await require_project_member(db, board.project_id, user)
  return task, board, access


async def require_comment_author(
  db: AsyncSession,
  comment_id: str,
  user: User,
  *,
  allow_admin: bool = False,
) -> tuple[Comment, Task, Board, ProjectAccess]:
  comment = await get_comment(db, comment_id)
  task, board, access = await require_task_access(db, comment.task_id, user)
  if comment.author_id != user.id and not (allow_admin and access.is_admin):
    raise ForbiddenError("Not authorized to modify this comment")
  return comment, task, board, access
