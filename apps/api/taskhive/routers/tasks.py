from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive import engine
from taskhive.access import require_board_access, require_task_access
from taskhive.activity import notify_many, write_activity
from taskhive.board_state import find_column
from taskhive.deps import get_current_user, get_db, origin_connection_id
from taskhive.models import Board, Task, User
from taskhive.realtime import board_room, schedule_broadcast
from taskhive.schemas import TaskCreateIn, TaskMoveIn, TaskMoveOut, TaskOut, TaskUpdateIn
from taskhive.serializers import board_out, task_out

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger("taskhive.api")

# request field -> engine field
_UPDATE_FIELDS = {
  "title": "title",
  "description": "description",
  "assignedTo": "assigned_to",
  "dueDate": "due_date",
  "labels": "labels",
}


def _column_title(b: Board, column_id: str | None) -> str | None:
  col = find_column(b.columns, column_id) if column_id else None
  return col["title"] if col else None


async def _notify_assigned(db: AsyncSession, t: Task, b: Board, user_ids: list[str], actor: User) -> None:
  await notify_many(
    db,
    user_ids,
    exclude=actor.id,
    sender_id=actor.id,
    type="task_assigned",
    message=f"You have been assigned to the task \"{t.title}\"",
    entity_type="task",
    entity_id=t.id,
    project_id=b.project_id,
  )


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
  payload: TaskCreateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> TaskOut:
  b, _ = await require_board_access(db, payload.boardId, user)
  t = await engine.create_task(
    db,
    b,
    column_id=payload.columnId,
    title=payload.title,
    created_by=user.id,
    description=payload.description,
    assigned_to=payload.assignedTo,
    due_date=payload.dueDate,
    labels=[l.model_dump() for l in payload.labels],
    expected_version=payload.boardVersion,
  )
  await write_activity(
    db,
    actor_id=user.id,
    action="created",
    entity_type="task",
    entity_id=t.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskTitle": t.title, "columnTitle": _column_title(b, t.column_id)},
  )
  await _notify_assigned(db, t, b, list(t.assigned_to), user)
  await db.commit()
  out = task_out(t)
  schedule_broadcast(
    background,
    board_room(b.id),
    "task:created",
    {"boardId": b.id, "columnId": t.column_id, "version": b.version, "task": out},
    exclude=origin,
  )
  return out


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t, _, _ = await require_task_access(db, task_id, user)
  return task_out(t)


@router.put("/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> TaskOut:
  t, b, _ = await require_task_access(db, task_id, user)
  raw = payload.model_dump(exclude_unset=True)
  changes = {_UPDATE_FIELDS[k]: v for k, v in raw.items() if k in _UPDATE_FIELDS}
  previous = list(t.assigned_to or [])
  added, removed = await engine.update_task(db, b, t, changes)

  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="task",
    entity_id=t.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskTitle": t.title, "fields": sorted(raw)},
  )
  for uid in added:
    await write_activity(
      db, actor_id=user.id, action="assigned", entity_type="task", entity_id=t.id, project_id=b.project_id, board_id=b.id,
      data={"taskTitle": t.title, "assigneeId": uid},
    )
  for uid in removed:
    await write_activity(
      db, actor_id=user.id, action="unassigned", entity_type="task", entity_id=t.id, project_id=b.project_id, board_id=b.id,
      data={"taskTitle": t.title, "assigneeId": uid},
    )
  await _notify_assigned(db, t, b, added, user)
  await notify_many(
    db,
    [u for u in previous if u not in removed],
    exclude=user.id,
    sender_id=user.id,
    type="task_updated",
    message=f"The task \"{t.title}\" was updated",
    entity_type="task",
    entity_id=t.id,
    project_id=b.project_id,
  )
  await db.commit()
  out = task_out(t)
  schedule_broadcast(background, board_room(b.id), "task:updated", {"boardId": b.id, "task": out}, exclude=origin)
  return out


@router.put("/{task_id}/move", response_model=TaskMoveOut)
async def move_task(
  task_id: str,
  payload: TaskMoveIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> TaskMoveOut:
  t, b, _ = await require_task_access(db, task_id, user)
  res = await engine.move_task(
    db,
    b,
    t,
    dest_column_id=payload.columnId,
    dest_index=payload.order,
    source_column_id=payload.sourceColumnId,
    source_index=payload.sourceIndex,
    expected_version=payload.boardVersion,
  )
  changed = (res.source_column_id, res.source_index) != (res.dest_column_id, res.dest_index)
  if changed:
    from_title = _column_title(b, res.source_column_id)
    to_title = _column_title(b, res.dest_column_id)
    await write_activity(
      db,
      actor_id=user.id,
      action="moved",
      entity_type="task",
      entity_id=t.id,
      project_id=b.project_id,
      board_id=b.id,
      data={"taskTitle": t.title, "fromColumn": from_title, "toColumn": to_title},
    )
    if res.source_column_id != res.dest_column_id:
      await notify_many(
        db,
        list(t.assigned_to or []),
        exclude=user.id,
        sender_id=user.id,
        type="task_moved",
        message=f"The task \"{t.title}\" was moved to \"{to_title}\"",
        entity_type="task",
        entity_id=t.id,
        project_id=b.project_id,
      )
  await db.commit()
  if changed:
    logger.info("task moved task=%s board=%s to=%s@%s", t.id, b.id, res.dest_column_id, res.dest_index)
    schedule_broadcast(
      background,
      board_room(b.id),
      "task:moved",
      {
        "taskId": t.id,
        "boardId": b.id,
        "sourceColumnId": res.source_column_id,
        "sourceIndex": res.source_index,
        "destColumnId": res.dest_column_id,
        "destIndex": res.dest_index,
        "version": b.version,
      },
      exclude=origin,
    )
  return TaskMoveOut(task=task_out(t), board=board_out(b))


@router.delete("/{task_id}")
async def delete_task(
  task_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> dict:
  t, b, _ = await require_task_access(db, task_id, user)
  title, column_id = t.title, t.column_id
  await engine.delete_task(db, b, t)
  await write_activity(
    db,
    actor_id=user.id,
    action="deleted",
    entity_type="task",
    entity_id=task_id,
    project_id=b.project_id,
    board_id=b.id,
    data={"taskTitle": title, "columnTitle": _column_title(b, column_id)},
  )
  await db.commit()
  schedule_broadcast(
    background,
    board_room(b.id),
    "task:deleted",
    {"taskId": task_id, "boardId": b.id, "columnId": column_id, "version": b.version},
    exclude=origin,
  )
  return {"ok": True}
