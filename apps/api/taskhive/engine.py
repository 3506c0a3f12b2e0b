"""Board and task mutations.

Each function reads the board already loaded into the session, computes new
column documents with :mod:`taskhive.board_state`, applies them together with
the denormalized ``column_id``/``order_index`` of every task in a touched column
and flushes. The caller commits. ``Board.version`` is the mapper's version
column, so a flush against a board another request already rewrote matches no
row and surfaces as :class:`ConflictError`.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from taskhive import board_state, cascade
from taskhive.access import valid_id
from taskhive.errors import ConflictError, ValidationError
from taskhive.models import Board, ProjectMember, Task, new_id

logger = logging.getLogger("taskhive.engine")

DEFAULT_LABEL_COLOR = "#3498db"
_INT_RE = re.compile(r"-?[0-9]+")

_TASK_FIELDS = ("title", "description", "assigned_to", "due_date", "labels")


@dataclass
class MoveResult:
  task_id: str
  source_column_id: str | None
  source_index: int | None
  dest_column_id: str
  dest_index: int


def check_board_version(board: Board, expected: int | None) -> None:
  if expected is None:
    return
  if int(expected) != int(board.version):
    logger.warning("stale board version board=%s expected=%s current=%s", board.id, expected, board.version)
    raise ConflictError("Board has changed since it was loaded; reload and retry")


def coerce_index(value: Any, *, field: str = "order") -> int:
  if isinstance(value, bool):
    raise ValidationError(f"{field} must be an integer")
  if isinstance(value, int):
    return value
  if isinstance(value, float) and value.is_integer():
    return int(value)
  if isinstance(value, str) and _INT_RE.fullmatch(value.strip()):
    return int(value.strip())
  raise ValidationError(f"{field} must be an integer")


def normalize_assignees(ids: Iterable[str] | None) -> list[str]:
  out: list[str] = []
  for raw in ids or []:
    uid = str(raw or "").strip()
    if uid and uid not in out:
      out.append(uid)
  return out


def normalize_labels(labels: Iterable[Any] | None) -> list[dict[str, str]]:
  out: list[dict[str, str]] = []
  for raw in labels or []:
    if isinstance(raw, str):
      raw = {"name": raw}
    if not isinstance(raw, dict):
      raise ValidationError("Labels must be objects with a name")
    name = str(raw.get("name") or "").strip()
    if not name:
      raise ValidationError("Label name is required")
    color = str(raw.get("color") or "").strip() or DEFAULT_LABEL_COLOR
    out.append({"name": name, "color": color})
  return out


async def _check_assignees(db: AsyncSession, project_id: str, ids: list[str]) -> None:
  if not ids:
    return
  if not all(valid_id(u) for u in ids):
    raise ValidationError("Assignees must be members of the project")
  res = await db.execute(
    select(ProjectMember.user_id).where(ProjectMember.project_id == project_id, ProjectMember.user_id.in_(ids))
  )
  members = {str(u) for u in res.scalars().all()}
  missing = [u for u in ids if u not in members]
  if missing:
    raise ValidationError("Assignees must be members of the project")


async def _save(db: AsyncSession, board: Board) -> None:
  # a failed flush expires the board, so read the id first
  board_id = board.id
  try:
    await db.flush()
  except StaleDataError as exc:
    logger.warning("concurrent write lost on board=%s", board_id)
    raise ConflictError("Board was modified by another request; reload and retry") from exc


async def _reindex(db: AsyncSession, board: Board, column_ids: set[str], *, moved: str | None = None) -> list[Task]:
  pos = board_state.positions(board.columns, column_ids)
  if not pos:
    return []
  res = await db.execute(select(Task).where(Task.id.in_(list(pos))))
  tasks = list(res.scalars().all())
  for t in tasks:
    col, idx = pos[t.id]
    if t.id != moved and t.column_id != col:
      logger.warning("repaired task column drift task=%s stored=%s actual=%s", t.id, t.column_id, col)
    t.column_id = col
    t.order_index = idx
  return tasks


async def create_board(db: AsyncSession, *, project_id: str, title: str, description: str | None = None) -> Board:
  t = board_state.clean_title(title, what="Board")
  cols, order = board_state.default_columns()
  b = Board(project_id=project_id, title=t, description=(description or "").strip(), columns=cols, column_order=order)
  db.add(b)
  await db.flush()
  return b


async def update_board(
  db: AsyncSession,
  board: Board,
  *,
  title: str | None = None,
  description: str | None = None,
  expected_version: int | None = None,
) -> None:
  check_board_version(board, expected_version)
  if title is not None:
    board.title = board_state.clean_title(title, what="Board")
  if description is not None:
    board.description = description.strip()
  await _save(db, board)


async def create_column(db: AsyncSession, board: Board, title: str, *, expected_version: int | None = None) -> dict[str, Any]:
  check_board_version(board, expected_version)
  cols, order, col = board_state.add_column(board.columns, board.column_order, title)
  board.columns = cols
  board.column_order = order
  await _save(db, board)
  return col


async def rename_column(
  db: AsyncSession,
  board: Board,
  column_id: str,
  title: str,
  *,
  expected_version: int | None = None,
) -> dict[str, Any]:
  check_board_version(board, expected_version)
  board.columns = board_state.rename_column(board.columns, column_id, title)
  await _save(db, board)
  return board_state.require_column(board.columns, column_id)


async def reorder_columns(db: AsyncSession, board: Board, new_order: list[str], *, expected_version: int | None = None) -> None:
  check_board_version(board, expected_version)
  cols, order = board_state.reorder_columns(board.columns, new_order)
  board.columns = cols
  board.column_order = order
  await _save(db, board)


async def delete_column(db: AsyncSession, board: Board, column_id: str, *, expected_version: int | None = None) -> list[str]:
  """Drop the column and every task it holds. Returns the deleted task ids."""
  check_board_version(board, expected_version)
  cols, order, removed = board_state.remove_column(board.columns, board.column_order, column_id)
  board.columns = cols
  board.column_order = order
  await _save(db, board)

  task_ids = list(removed["taskIds"])
  # rows pointing at the column without being listed in it
  res = await db.execute(select(Task.id).where(Task.board_id == board.id, Task.column_id == column_id))
  for tid in res.scalars().all():
    if str(tid) not in task_ids:
      logger.warning("deleting unlisted task=%s of column=%s", tid, column_id)
      task_ids.append(str(tid))
  await cascade.delete_tasks(db, task_ids)
  return task_ids


async def create_task(
  db: AsyncSession,
  board: Board,
  *,
  column_id: str,
  title: str,
  created_by: str,
  description: str | None = None,
  assigned_to: Iterable[str] | None = None,
  due_date: datetime | None = None,
  labels: Iterable[Any] | None = None,
  expected_version: int | None = None,
) -> Task:
  check_board_version(board, expected_version)
  t = board_state.clean_title(title, what="Task")
  board_state.require_column(board.columns, column_id)
  assignees = normalize_assignees(assigned_to)
  await _check_assignees(db, board.project_id, assignees)

  task = Task(
    id=new_id(),
    board_id=board.id,
    column_id=column_id,
    title=t,
    description=(description or "").strip(),
    assigned_to=assignees,
    due_date=due_date,
    labels=normalize_labels(labels),
    created_by=created_by,
  )
  cols, idx = board_state.append_task(board.columns, column_id, task.id)
  task.order_index = idx
  board.columns = cols
  db.add(task)
  await _save(db, board)
  return task


async def update_task(db: AsyncSession, board: Board, task: Task, changes: dict[str, Any]) -> tuple[list[str], list[str]]:
  """Edit task fields. Column membership is never touched here.

  Returns ``(newly_assigned, unassigned)`` user ids.
  """
  unknown = set(changes) - set(_TASK_FIELDS)
  if unknown:
    raise ValidationError(f"Unsupported task fields: {', '.join(sorted(unknown))}")

  before = list(task.assigned_to or [])
  if "title" in changes:
    task.title = board_state.clean_title(changes["title"], what="Task")
  if "description" in changes:
    task.description = (changes["description"] or "").strip()
  if "due_date" in changes:
    task.due_date = changes["due_date"]
  if "labels" in changes:
    task.labels = normalize_labels(changes["labels"])
  if "assigned_to" in changes:
    assignees = normalize_assignees(changes["assigned_to"])
    await _check_assignees(db, board.project_id, assignees)
    task.assigned_to = assignees
  await db.flush()

  after = list(task.assigned_to or [])
  return [u for u in after if u not in before], [u for u in before if u not in after]


async def move_task(
  db: AsyncSession,
  board: Board,
  task: Task,
  *,
  dest_column_id: str,
  dest_index: Any,
  source_column_id: str | None = None,
  source_index: Any = None,
  expected_version: int | None = None,
) -> MoveResult:
  check_board_version(board, expected_version)
  idx = coerce_index(dest_index)
  board_state.require_column(board.columns, dest_column_id)

  loc = board_state.locate_task(board.columns, task.id)
  if source_column_id is not None and (loc is None or loc[0] != source_column_id):
    raise ConflictError("Task is no longer in the source column; reload and retry")
  if source_index is not None and (loc is None or loc[1] != coerce_index(source_index, field="sourceIndex")):
    raise ConflictError("Task is no longer at the source position; reload and retry")
  if loc is None:
    logger.warning("task=%s missing from board=%s columns; reinserting", task.id, board.id)

  cols, source, new_idx = board_state.move_task(board.columns, task.id, dest_column_id, idx)
  board.columns = cols
  touched = {dest_column_id, task.column_id}
  if source:
    touched.add(source)
  await _reindex(db, board, touched, moved=task.id)
  await _save(db, board)
  return MoveResult(
    task_id=task.id,
    source_column_id=loc[0] if loc else None,
    source_index=loc[1] if loc else None,
    dest_column_id=dest_column_id,
    dest_index=new_idx,
  )


async def delete_task(db: AsyncSession, board: Board, task: Task) -> None:
  cols, source = board_state.remove_task(board.columns, task.id)
  board.columns = cols
  if source:
    await _reindex(db, board, {source})
  await _save(db, board)
  await cascade.delete_tasks(db, [task.id])
