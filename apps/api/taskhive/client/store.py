"""Client-side mirror of one board with optimistic mutations.

Every local mutation is applied to the mirror first and recorded in a
:class:`TransactionLog` together with a closure that undoes it. When the server
rejects the call, the inverse is applied if nothing has been layered on top of
that entry since; otherwise the store re-fetches the board.
"""
from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from taskhive import board_state
from taskhive.client.api import ApiError, TaskhiveApi
from taskhive.errors import DomainError

logger = logging.getLogger("taskhive.client")

PENDING = "pending"
CONFIRMED = "confirmed"
REVERTED = "reverted"
REMOTE = "remote"

# transport failures, error responses and undecodable bodies
_CALL_ERRORS = (ApiError, httpx.HTTPError, ValueError)


@dataclass
class LogEntry:
  seq: int
  kind: str
  inverse: Callable[[], None] | None
  status: str = PENDING
  detail: dict[str, Any] = field(default_factory=dict)


class TransactionLog:
  def __init__(self) -> None:
    self._seq = itertools.count(1)
    self.entries: list[LogEntry] = []

  def record(self, kind: str, inverse: Callable[[], None] | None, **detail: Any) -> LogEntry:
    entry = LogEntry(seq=next(self._seq), kind=kind, inverse=inverse, detail=detail)
    self.entries.append(entry)
    return entry

  def mark_remote(self, event: str) -> None:
    # a remote change layered on top invalidates the inverses of older entries
    self.entries.append(LogEntry(seq=next(self._seq), kind=event, inverse=None, status=REMOTE))
    self._prune()

  def is_newest(self, entry: LogEntry) -> bool:
    return bool(self.entries) and self.entries[-1] is entry

  def settle(self, entry: LogEntry, status: str) -> None:
    entry.status = status
    self._prune()

  def pending(self) -> list[LogEntry]:
    return [e for e in self.entries if e.status == PENDING]

  def _prune(self) -> None:
    # drop settled entries from the head, but always keep the newest entry
    while len(self.entries) > 1 and self.entries[0].status != PENDING:
      self.entries.pop(0)


class BoardStore:
  def __init__(self, api: TaskhiveApi, board_id: str, *, strict_versions: bool = False) -> None:
    self.api = api
    self.board_id = board_id
    self.strict_versions = strict_versions
    self.log = TransactionLog()
    self.title = ""
    self.description = ""
    self.columns: list[dict[str, Any]] = []
    self.column_order: list[str] = []
    self.tasks: dict[str, dict[str, Any]] = {}
    self.comments: dict[str, list[dict[str, Any]]] = {}
    self.version: int | None = None
    self.deleted = False
    self.error: str | None = None
    self.refetches = 0

  # loading

  def load(self, board: dict[str, Any]) -> None:
    self.title = board.get("title", "")
    self.description = board.get("description", "")
    self.columns = copy.deepcopy(board.get("columns") or [])
    self.column_order = list(board.get("columnOrder") or [])
    if board.get("tasks") is not None:
      self.tasks = {t["id"]: dict(t) for t in board["tasks"]}
    self.version = board.get("version")
    self.deleted = False

  async def refresh(self) -> None:
    self.refetches += 1
    self.load(await self.api.get_board(self.board_id))

  def ordered_columns(self) -> list[dict[str, Any]]:
    by_id = {c["id"]: c for c in self.columns}
    return [by_id[cid] for cid in self.column_order if cid in by_id]

  def column_tasks(self, column_id: str) -> list[dict[str, Any]]:
    col = board_state.find_column(self.columns, column_id)
    if not col:
      return []
    return [self.tasks[tid] for tid in col["taskIds"] if tid in self.tasks]

  def _sync_positions(self, column_ids: set[str]) -> None:
    for tid, (cid, idx) in board_state.positions(self.columns, column_ids).items():
      t = self.tasks.get(tid)
      if t is not None:
        t["columnId"] = cid
        t["order"] = idx

  def _version_arg(self) -> int | None:
    return self.version if self.strict_versions else None

  def _adopt_version(self, board: dict[str, Any] | None) -> None:
    if board and board.get("version") is not None:
      self.version = board["version"]

  async def _reject(self, entry: LogEntry, exc: Exception) -> None:
    self.error = exc.message if isinstance(exc, (ApiError, DomainError)) else str(exc)
    if entry.inverse is not None and self.log.is_newest(entry):
      entry.inverse()
      self.log.settle(entry, REVERTED)
      logger.info("reverted %s via inverse: %s", entry.kind, self.error)
      return
    self.log.settle(entry, REVERTED)
    logger.info("re-fetching board after rejected %s: %s", entry.kind, self.error)
    await self.refresh()

  # optimistic mutations

  async def move_task(self, task_id: str, dest_column_id: str, dest_index: int) -> bool:
    loc = board_state.locate_task(self.columns, task_id)
    try:
      cols, source, idx = board_state.move_task(self.columns, task_id, dest_column_id, dest_index)
    except DomainError as exc:
      self.error = exc.message
      return False

    inverse = None
    if loc is not None:
      src_col, src_idx = loc

      def inverse() -> None:
        self.columns, _, _ = board_state.move_task(self.columns, task_id, src_col, src_idx)
        self._sync_positions({src_col, dest_column_id})

    self.columns = cols
    self._sync_positions({dest_column_id} | ({source} if source else set()))
    entry = self.log.record("move_task", inverse, taskId=task_id, destColumnId=dest_column_id, destIndex=idx)
    self.error = None
    try:
      res = await self.api.move_task(
        task_id,
        column_id=dest_column_id,
        order=idx,
        source_column_id=loc[0] if loc else None,
        source_index=loc[1] if loc else None,
        board_version=self._version_arg(),
      )
    except _CALL_ERRORS as exc:
      await self._reject(entry, exc)
      return False
    self._adopt_version(res.get("board"))
    if res.get("task"):
      self.tasks[task_id] = dict(res["task"])
    self.log.settle(entry, CONFIRMED)
    return True

  async def reorder_columns(self, new_order: list[str]) -> bool:
    before_order = list(self.column_order)
    try:
      cols, order = board_state.reorder_columns(self.columns, new_order)
    except DomainError as exc:
      self.error = exc.message
      return False

    def inverse() -> None:
      self.columns, self.column_order = board_state.reorder_columns(self.columns, before_order)

    self.columns, self.column_order = cols, order
    entry = self.log.record("reorder_columns", inverse, columnOrder=list(order))
    self.error = None
    try:
      board = await self.api.reorder_columns(self.board_id, order, board_version=self._version_arg())
    except _CALL_ERRORS as exc:
      await self._reject(entry, exc)
      return False
    self._adopt_version(board)
    self.log.settle(entry, CONFIRMED)
    return True

  async def create_column(self, title: str) -> dict[str, Any] | None:
    try:
      cols, order, col = board_state.add_column(self.columns, self.column_order, title)
    except DomainError as exc:
      self.error = exc.message
      return None
    temp_id = col["id"]

    def inverse() -> None:
      self.columns, self.column_order, _ = board_state.remove_column(self.columns, self.column_order, temp_id)

    self.columns, self.column_order = cols, order
    entry = self.log.record("create_column", inverse, title=col["title"])
    self.error = None
    try:
      board = await self.api.create_column(self.board_id, col["title"], board_version=self._version_arg())
    except _CALL_ERRORS as exc:
      await self._reject(entry, exc)
      return None
    # swap the placeholder for the server's column; the server appends, so it is the last new id
    known = set(self.column_order) - {temp_id}
    server_ids = [cid for cid in board.get("columnOrder", []) if cid not in known]
    created = board_state.find_column(board.get("columns") or [], server_ids[-1]) if server_ids else None
    if created:
      for c in self.columns:
        if c["id"] == temp_id:
          c.update(copy.deepcopy(created))
      self.column_order = [created["id"] if cid == temp_id else cid for cid in self.column_order]
    self._adopt_version(board)
    self.log.settle(entry, CONFIRMED)
    return created or col

  async def delete_task(self, task_id: str) -> bool:
    loc = board_state.locate_task(self.columns, task_id)
    snapshot = copy.deepcopy(self.tasks.get(task_id))
    cols, source = board_state.remove_task(self.columns, task_id)

    inverse = None
    if loc is not None:
      src_col, src_idx = loc

      def inverse() -> None:
        self.columns, _ = board_state.insert_task(self.columns, src_col, task_id, src_idx)
        if snapshot is not None:
          self.tasks[task_id] = snapshot
        self._sync_positions({src_col})

    self.columns = cols
    self.tasks.pop(task_id, None)
    if source:
      self._sync_positions({source})
    entry = self.log.record("delete_task", inverse, taskId=task_id)
    self.error = None
    try:
      await self.api.delete_task(task_id)
    except _CALL_ERRORS as exc:
      await self._reject(entry, exc)
      return False
    self.log.settle(entry, CONFIRMED)
    return True

  async def load_comments(self, task_id: str) -> list[dict[str, Any]]:
    self.comments[task_id] = list(await self.api.list_comments(task_id))
    return self.comments[task_id]

  # inbound broadcasts

  async def apply_remote(self, event: str, data: dict[str, Any]) -> bool:
    """Replay one broadcast onto the mirror. Returns False when it was not for this board."""
    if not isinstance(data, dict) or data.get("boardId") != self.board_id:
      return False
    handler = self._REMOTE_HANDLERS.get(event)
    if handler is None:
      return False
    self.log.mark_remote(event)
    ok = handler(self, data)
    if not ok:
      await self.refresh()
    elif data.get("version") is not None:
      self.version = data["version"]
    return True

  def _remote_task_moved(self, data: dict[str, Any]) -> bool:
    task_id, dest = data.get("taskId"), data.get("destColumnId")
    if task_id not in self.tasks or board_state.find_column(self.columns, dest or "") is None:
      return False
    before = board_state.locate_task(self.columns, task_id)
    self.columns, source, _ = board_state.move_task(self.columns, task_id, dest, int(data.get("destIndex") or 0))
    touched = {dest} | ({source} if source else set()) | ({before[0]} if before else set())
    self._sync_positions(touched)
    return True

  def _remote_task_created(self, data: dict[str, Any]) -> bool:
    task = data.get("task")
    if not isinstance(task, dict) or board_state.find_column(self.columns, task.get("columnId", "")) is None:
      return False
    self.tasks[task["id"]] = dict(task)
    if board_state.locate_task(self.columns, task["id"]) is None:
      self.columns, _ = board_state.insert_task(self.columns, task["columnId"], task["id"], task.get("order", 0))
      self._sync_positions({task["columnId"]})
    return True

  def _remote_task_updated(self, data: dict[str, Any]) -> bool:
    task = data.get("task")
    if not isinstance(task, dict) or task.get("id") not in self.tasks:
      return False
    current = self.tasks[task["id"]]
    # column membership only changes through task:moved
    fields = {k: v for k, v in task.items() if k not in ("columnId", "order")}
    current.update(fields)
    return True

  def _remote_task_deleted(self, data: dict[str, Any]) -> bool:
    task_id = data.get("taskId")
    self.columns, source = board_state.remove_task(self.columns, task_id)
    self.tasks.pop(task_id, None)
    self.comments.pop(task_id, None)
    if source:
      self._sync_positions({source})
    return True

  def _remote_board_updated(self, data: dict[str, Any]) -> bool:
    if "columns" not in data or "columnOrder" not in data:
      return False
    self.columns = copy.deepcopy(data["columns"])
    self.column_order = list(data["columnOrder"])
    self.title = data.get("title", self.title)
    self.description = data.get("description", self.description)
    for tid in data.get("deletedTaskIds") or []:
      self.tasks.pop(tid, None)
      self.comments.pop(tid, None)
    self._sync_positions({c["id"] for c in self.columns})
    return True

  def _remote_board_deleted(self, data: dict[str, Any]) -> bool:
    self.deleted = True
    self.columns, self.column_order, self.tasks, self.comments = [], [], {}, {}
    return True

  def _remote_comment(self, data: dict[str, Any]) -> bool:
    task_id = data.get("taskId")
    if task_id not in self.comments:
      # comments for this task were never loaded
      return True
    comments = self.comments[task_id]
    if "commentId" in data:
      self.comments[task_id] = [c for c in comments if c.get("id") != data["commentId"]]
      return True
    comment = data.get("comment")
    if not isinstance(comment, dict):
      return False
    self.comments[task_id] = [c for c in comments if c.get("id") != comment.get("id")] + [comment]
    return True

  _REMOTE_HANDLERS: dict[str, Callable[["BoardStore", dict[str, Any]], bool]] = {
    "task:moved": _remote_task_moved,
    "task:created": _remote_task_created,
    "task:updated": _remote_task_updated,
    "task:deleted": _remote_task_deleted,
    "board:updated": _remote_board_updated,
    "board:deleted": _remote_board_deleted,
    "comment:added": _remote_comment,
    "comment:updated": _remote_comment,
    "comment:deleted": _remote_comment,
  }
