"""Ordering helpers over a board's column documents.

A board stores ``columns`` (list of ``{"id", "title", "order", "taskIds"}``) and
``columnOrder`` (list of column ids). Every helper here is pure: it copies its
input and returns new lists, so callers can diff or discard the result. The
server engine and the client mirror both go through these functions so they
agree on ordering semantics.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any

from taskhive.errors import NotFoundError, ValidationError

DEFAULT_COLUMN_TITLES = ("To Do", "In Progress", "Done")

Column = dict[str, Any]


def new_column(title: str, order: int) -> Column:
  return {"id": str(uuid.uuid4()), "title": title, "order": order, "taskIds": []}


def clean_title(title: str | None, *, what: str) -> str:
  t = (title or "").strip()
  if not t:
    raise ValidationError(f"{what} title is required")
  return t


def default_columns() -> tuple[list[Column], list[str]]:
  columns = [new_column(title, idx) for idx, title in enumerate(DEFAULT_COLUMN_TITLES)]
  return columns, [c["id"] for c in columns]


def find_column(columns: list[Column], column_id: str) -> Column | None:
  return next((c for c in columns if c["id"] == column_id), None)


def require_column(columns: list[Column], column_id: str) -> Column:
  col = find_column(columns, column_id)
  if col is None:
    raise NotFoundError("Column not found")
  return col


def add_column(columns: list[Column], column_order: list[str], title: str) -> tuple[list[Column], list[str], Column]:
  t = clean_title(title, what="Column")
  cols = copy.deepcopy(columns)
  order = list(column_order)
  col = new_column(t, len(order))
  cols.append(col)
  order.append(col["id"])
  return cols, order, col


def rename_column(columns: list[Column], column_id: str, title: str) -> list[Column]:
  t = clean_title(title, what="Column")
  cols = copy.deepcopy(columns)
  require_column(cols, column_id)["title"] = t
  return cols


def check_permutation(current_ids: list[str], new_order: list[str]) -> None:
  if len(new_order) != len(set(new_order)):
    raise ValidationError("Column order contains duplicate ids")
  unknown = set(new_order) - set(current_ids)
  if unknown:
    raise ValidationError("Invalid column IDs in order array")
  if len(new_order) != len(current_ids) or set(new_order) != set(current_ids):
    raise ValidationError("Column order must include every column exactly once")


def reorder_columns(columns: list[Column], new_order: list[str]) -> tuple[list[Column], list[str]]:
  check_permutation([c["id"] for c in columns], list(new_order))
  cols = copy.deepcopy(columns)
  index = {cid: idx for idx, cid in enumerate(new_order)}
  for c in cols:
    c["order"] = index[c["id"]]
  return cols, list(new_order)


def remove_column(columns: list[Column], column_order: list[str], column_id: str) -> tuple[list[Column], list[str], Column]:
  removed = copy.deepcopy(require_column(columns, column_id))
  cols = [copy.deepcopy(c) for c in columns if c["id"] != column_id]
  order = [cid for cid in column_order if cid != column_id]
  index = {cid: idx for idx, cid in enumerate(order)}
  for c in cols:
    c["order"] = index.get(c["id"], c["order"])
  return cols, order, removed


def locate_task(columns: list[Column], task_id: str) -> tuple[str, int] | None:
  for c in columns:
    ids = c["taskIds"]
    if task_id in ids:
      return c["id"], ids.index(task_id)
  return None


def append_task(columns: list[Column], column_id: str, task_id: str) -> tuple[list[Column], int]:
  cols = copy.deepcopy(columns)
  col = require_column(cols, column_id)
  col["taskIds"].append(task_id)
  return cols, len(col["taskIds"]) - 1


def remove_task(columns: list[Column], task_id: str) -> tuple[list[Column], str | None]:
  """Remove ``task_id`` by id from whichever column holds it."""
  cols = copy.deepcopy(columns)
  found: str | None = None
  for c in cols:
    if task_id in c["taskIds"]:
      c["taskIds"] = [tid for tid in c["taskIds"] if tid != task_id]
      found = found or c["id"]
  return cols, found


def insert_task(columns: list[Column], column_id: str, task_id: str, index: int) -> tuple[list[Column], int]:
  cols = copy.deepcopy(columns)
  ids = require_column(cols, column_id)["taskIds"]
  idx = min(max(int(index), 0), len(ids))
  ids.insert(idx, task_id)
  return cols, idx


def move_task(columns: list[Column], task_id: str, dest_column_id: str, dest_index: int) -> tuple[list[Column], str | None, int]:
  """Remove-then-insert as one step.

  Returns the new columns, the column the task was taken from (``None`` when it
  was in no column) and the clamped destination index.
  """
  require_column(columns, dest_column_id)
  cols, source = remove_task(columns, task_id)
  cols, idx = insert_task(cols, dest_column_id, task_id, dest_index)
  return cols, source, idx


def positions(columns: list[Column], column_ids: set[str] | None = None) -> dict[str, tuple[str, int]]:
  out: dict[str, tuple[str, int]] = {}
  for c in columns:
    if column_ids is not None and c["id"] not in column_ids:
      continue
    for idx, tid in enumerate(c["taskIds"]):
      out[tid] = (c["id"], idx)
  return out


def invariant_errors(columns: list[Column], column_order: list[str]) -> list[str]:
  errors: list[str] = []
  ids = [c["id"] for c in columns]
  if sorted(ids) != sorted(column_order) or len(set(column_order)) != len(column_order):
    errors.append("columnOrder is not a permutation of column ids")
  seen: set[str] = set()
  for c in columns:
    for tid in c["taskIds"]:
      if tid in seen:
        errors.append(f"task {tid} appears more than once")
      seen.add(tid)
  return errors
