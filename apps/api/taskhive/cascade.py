"""Explicit cascades, one per parent kind.

Each routine only issues DELETEs into the caller's session; the caller commits,
so a cascade and the mutation that triggered it land in one transaction.
"""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.models import Activity, Board, Comment, Notification, Project, ProjectMember, Task


async def delete_tasks(db: AsyncSession, task_ids: Iterable[str]) -> int:
  ids = [str(t) for t in task_ids]
  if not ids:
    return 0
  await db.execute(delete(Comment).where(Comment.task_id.in_(ids)))
  res = await db.execute(delete(Task).where(Task.id.in_(ids)))
  return int(res.rowcount or 0)


async def delete_board_everything(db: AsyncSession, *, board_id: str) -> None:
  # tasks and their comments
  await db.execute(delete(Comment).where(Comment.task_id.in_(select(Task.id).where(Task.board_id == board_id))))
  await db.execute(delete(Task).where(Task.board_id == board_id))
  await db.execute(delete(Board).where(Board.id == board_id))


async def delete_project_everything(db: AsyncSession, *, project_id: str) -> None:
  res = await db.execute(select(Board.id).where(Board.project_id == project_id))
  for board_id in res.scalars().all():
    await delete_board_everything(db, board_id=board_id)
  await db.execute(delete(Activity).where(Activity.project_id == project_id))
  await db.execute(delete(Notification).where(Notification.project_id == project_id))
  await db.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
  await db.execute(delete(Project).where(Project.id == project_id))
