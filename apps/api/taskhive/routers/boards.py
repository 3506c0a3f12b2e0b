from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive import cascade, engine
from taskhive.access import require_board_access, require_project_member
from taskhive.activity import write_activity
from taskhive.board_state import require_column
from taskhive.deps import get_current_user, get_db, origin_connection_id
from taskhive.models import Board, User
from taskhive.realtime import board_room, project_room, schedule_broadcast
from taskhive.schemas import BoardCreateIn, BoardOut, BoardUpdateIn, ColumnCreateIn, ColumnRenameIn, ColumnReorderIn
from taskhive.serializers import board_out, board_with_tasks

router = APIRouter(prefix="/boards", tags=["boards"])


def _board_descriptor(b: Board, action: str, **extra: Any) -> dict[str, Any]:
  return {
    "boardId": b.id,
    "action": action,
    "version": b.version,
    "title": b.title,
    "description": b.description,
    "columns": b.columns,
    "columnOrder": b.column_order,
    **extra,
  }


@router.post("", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_board(
  payload: BoardCreateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  access = await require_project_member(db, payload.projectId, user)
  b = await engine.create_board(db, project_id=access.project.id, title=payload.title, description=payload.description)
  await write_activity(
    db,
    actor_id=user.id,
    action="created",
    entity_type="board",
    entity_id=b.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"boardTitle": b.title},
  )
  await db.commit()
  out = board_out(b)
  schedule_broadcast(background, project_room(b.project_id), "board:created", out, exclude=origin)
  return out


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  return await board_with_tasks(db, b)


@router.put("/{board_id}", response_model=BoardOut)
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  await engine.update_board(db, b, title=payload.title, description=payload.description, expected_version=payload.boardVersion)
  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="board",
    entity_id=b.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"boardTitle": b.title},
  )
  await db.commit()
  schedule_broadcast(background, board_room(b.id), "board:updated", _board_descriptor(b, "updated"), exclude=origin)
  return board_out(b)


@router.delete("/{board_id}")
async def delete_board(
  board_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> dict:
  b, _ = await require_board_access(db, board_id, user, admin=True)
  project_id, title = b.project_id, b.title
  await cascade.delete_board_everything(db, board_id=b.id)
  await write_activity(
    db,
    actor_id=user.id,
    action="deleted",
    entity_type="board",
    entity_id=board_id,
    project_id=project_id,
    board_id=board_id,
    data={"boardTitle": title},
  )
  await db.commit()
  descriptor = {"boardId": board_id, "projectId": project_id}
  schedule_broadcast(background, board_room(board_id), "board:deleted", descriptor, exclude=origin)
  schedule_broadcast(background, project_room(project_id), "board:deleted", descriptor, exclude=origin)
  return {"ok": True}


@router.post("/{board_id}/columns", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_column(
  board_id: str,
  payload: ColumnCreateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  col = await engine.create_column(db, b, payload.title, expected_version=payload.boardVersion)
  await write_activity(
    db,
    actor_id=user.id,
    action="created",
    entity_type="column",
    entity_id=col["id"],
    project_id=b.project_id,
    board_id=b.id,
    data={"columnTitle": col["title"], "boardTitle": b.title},
  )
  await db.commit()
  schedule_broadcast(
    background, board_room(b.id), "board:updated", _board_descriptor(b, "column_created", columnId=col["id"]), exclude=origin
  )
  return board_out(b)


@router.put("/{board_id}/columns/reorder", response_model=BoardOut)
async def reorder_columns(
  board_id: str,
  payload: ColumnReorderIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  await engine.reorder_columns(db, b, payload.columnOrder, expected_version=payload.boardVersion)
  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="board",
    entity_id=b.id,
    project_id=b.project_id,
    board_id=b.id,
    data={"boardTitle": b.title, "columnOrder": list(b.column_order)},
  )
  await db.commit()
  schedule_broadcast(background, board_room(b.id), "board:updated", _board_descriptor(b, "columns_reordered"), exclude=origin)
  return board_out(b)


@router.put("/{board_id}/columns/{column_id}", response_model=BoardOut)
async def rename_column(
  board_id: str,
  column_id: str,
  payload: ColumnRenameIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  old_title = require_column(b.columns, column_id)["title"]
  col = await engine.rename_column(db, b, column_id, payload.title, expected_version=payload.boardVersion)
  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="column",
    entity_id=column_id,
    project_id=b.project_id,
    board_id=b.id,
    data={"columnTitle": col["title"], "previousTitle": old_title, "boardTitle": b.title},
  )
  await db.commit()
  schedule_broadcast(
    background, board_room(b.id), "board:updated", _board_descriptor(b, "column_updated", columnId=column_id), exclude=origin
  )
  return board_out(b)


@router.delete("/{board_id}/columns/{column_id}", response_model=BoardOut)
async def delete_column(
  board_id: str,
  column_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> BoardOut:
  b, _ = await require_board_access(db, board_id, user)
  title = require_column(b.columns, column_id)["title"]
  deleted = await engine.delete_column(db, b, column_id)
  await write_activity(
    db,
    actor_id=user.id,
    action="deleted",
    entity_type="column",
    entity_id=column_id,
    project_id=b.project_id,
    board_id=b.id,
    data={"columnTitle": title, "boardTitle": b.title, "deletedTasks": len(deleted)},
  )
  await db.commit()
  schedule_broadcast(
    background,
    board_room(b.id),
    "board:updated",
    _board_descriptor(b, "column_deleted", columnId=column_id, deletedTaskIds=deleted),
    exclude=origin,
  )
  return board_out(b)
