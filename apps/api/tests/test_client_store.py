from __future__ import annotations

import copy

import pytest

from conftest import auth, column_by_title, create_project, create_task, get_board, token

from taskhive.client import ApiError, BoardStore, TaskhiveApi, TransactionLog
from taskhive.client.api import normalize_base_url
from taskhive.client.store import CONFIRMED, REVERTED


def _board() -> dict:
  return {
    "id": "b1",
    "title": "Main Board",
    "description": "",
    "version": 3,
    "columnOrder": ["todo", "doing", "done"],
    "columns": [
      {"id": "todo", "title": "To Do", "order": 0, "taskIds": ["t1", "t2"]},
      {"id": "doing", "title": "In Progress", "order": 1, "taskIds": []},
      {"id": "done", "title": "Done", "order": 2, "taskIds": ["t3"]},
    ],
    "tasks": [
      {"id": "t1", "title": "one", "columnId": "todo", "order": 0},
      {"id": "t2", "title": "two", "columnId": "todo", "order": 1},
      {"id": "t3", "title": "three", "columnId": "done", "order": 0},
    ],
  }


class FakeApi:
  def __init__(self, board: dict) -> None:
    self.board = board
    self.calls: list[tuple] = []
    self.fail: Exception | None = None
    self.during_call = None

  async def _maybe_fail(self) -> None:
    if self.during_call is not None:
      await self.during_call()
    if self.fail is not None:
      raise self.fail

  async def get_board(self, board_id: str) -> dict:
    self.calls.append(("get_board", board_id))
    return copy.deepcopy(self.board)

  async def move_task(self, task_id: str, **kwargs) -> dict:
    self.calls.append(("move_task", task_id, kwargs))
    await self._maybe_fail()
    return {"task": {"id": task_id, "columnId": kwargs["column_id"], "order": kwargs["order"]}, "board": {"version": 4}}

  async def reorder_columns(self, board_id: str, order: list[str], **kwargs) -> dict:
    self.calls.append(("reorder_columns", list(order), kwargs))
    await self._maybe_fail()
    return {"columnOrder": list(order), "version": 4}

  async def create_column(self, board_id: str, title: str, **kwargs) -> dict:
    self.calls.append(("create_column", title, kwargs))
    await self._maybe_fail()
    col = {"id": "server-col", "title": title, "order": 3, "taskIds": []}
    return {
      "columns": self.board["columns"] + [col],
      "columnOrder": self.board["columnOrder"] + ["server-col"],
      "version": 4,
    }

  async def delete_task(self, task_id: str) -> dict:
    self.calls.append(("delete_task", task_id))
    await self._maybe_fail()
    return {"ok": True}

  async def list_comments(self, task_id: str) -> list[dict]:
    return [{"id": "c1", "taskId": task_id, "content": "hello"}]


async def _store(api: FakeApi, **kwargs) -> BoardStore:
  store = BoardStore(api, "b1", **kwargs)
  await store.refresh()
  return store


def _ids(store: BoardStore, column_id: str) -> list[str]:
  return [t["id"] for t in store.column_tasks(column_id)]


def test_transaction_log_keeps_newest_entry() -> None:
  log = TransactionLog()
  first = log.record("move_task", None)
  second = log.record("move_task", None)
  assert log.is_newest(second)
  assert log.pending() == [first, second]

  log.settle(first, CONFIRMED)
  assert log.entries == [second]
  log.settle(second, CONFIRMED)
  assert log.entries == [second]

  log.mark_remote("task:moved")
  assert not log.is_newest(second)
  assert [e.kind for e in log.entries] == ["task:moved"]


def test_normalize_base_url() -> None:
  assert normalize_base_url("api.example.com/") == "https://api.example.com"
  assert normalize_base_url(" http://localhost:8000 ") == "http://localhost:8000"
  with pytest.raises(ValueError):
    normalize_base_url("  ")


@pytest.mark.anyio
async def test_optimistic_move_is_confirmed() -> None:
  api = FakeApi(_board())
  store = await _store(api)

  assert await store.move_task("t1", "doing", 0) is True
  assert _ids(store, "todo") == ["t2"]
  assert _ids(store, "doing") == ["t1"]
  assert store.tasks["t2"]["order"] == 0
  assert store.version == 4
  assert store.log.pending() == []

  _, task_id, kwargs = api.calls[-1]
  assert task_id == "t1"
  assert kwargs == {"column_id": "doing", "order": 0, "source_column_id": "todo", "source_index": 0, "board_version": None}


@pytest.mark.anyio
async def test_strict_versions_sends_board_version() -> None:
  api = FakeApi(_board())
  store = await _store(api, strict_versions=True)
  await store.move_task("t3", "todo", 1)
  assert api.calls[-1][2]["board_version"] == 3


@pytest.mark.anyio
async def test_rejected_move_applies_inverse_without_refetch() -> None:
  api = FakeApi(_board())
  store = await _store(api)
  api.fail = ApiError(status_code=409, message="Task is no longer in the source column; reload and retry")

  assert await store.move_task("t2", "done", 0) is False
  assert _ids(store, "todo") == ["t1", "t2"]
  assert _ids(store, "done") == ["t3"]
  assert store.tasks["t2"]["columnId"] == "todo"
  assert store.tasks["t2"]["order"] == 1
  assert store.error == "Task is no longer in the source column; reload and retry"
  assert store.refetches == 1
  assert store.log.entries[-1].status == REVERTED


@pytest.mark.anyio
async def test_undecodable_response_is_treated_as_rejection() -> None:
  api = FakeApi(_board())
  store = await _store(api)
  api.fail = ValueError("Expecting value: line 1 column 1 (char 0)")

  assert await store.move_task("t1", "doing", 0) is False
  assert _ids(store, "todo") == ["t1", "t2"]
  assert _ids(store, "doing") == []
  assert store.error == "Expecting value: line 1 column 1 (char 0)"
  assert store.log.pending() == []

  assert await store.create_column("Review") is None
  assert store.column_order == ["todo", "doing", "done"]
  assert store.log.pending() == []

  api.fail = None
  assert await store.move_task("t1", "doing", 0) is True
  assert len(store.log.entries) == 1


@pytest.mark.anyio
async def test_rejection_after_remote_change_refetches() -> None:
  api = FakeApi(_board())
  store = await _store(api)

  server = _board()
  server["columns"][0]["taskIds"] = ["t2"]
  server["columns"][1]["taskIds"] = ["t1"]
  server["tasks"][0].update(columnId="doing", order=0)
  server["tasks"][1].update(order=0)
  server["version"] = 5

  async def remote_move_lands_first() -> None:
    api.board = server
    applied = await store.apply_remote(
      "task:moved",
      {"boardId": "b1", "taskId": "t1", "sourceColumnId": "todo", "destColumnId": "doing", "destIndex": 0, "version": 5},
    )
    assert applied

  api.during_call = remote_move_lands_first
  api.fail = ApiError(status_code=409, message="Board was modified by another request; reload and retry")

  assert await store.move_task("t2", "done", 1) is False
  assert store.refetches == 2
  assert _ids(store, "todo") == ["t2"]
  assert _ids(store, "doing") == ["t1"]
  assert _ids(store, "done") == ["t3"]
  assert store.version == 5


@pytest.mark.anyio
async def test_rejected_reorder_and_delete_are_undone() -> None:
  api = FakeApi(_board())
  store = await _store(api)
  api.fail = ApiError(status_code=400, message="Invalid column IDs in order array")

  assert await store.reorder_columns(["done", "todo", "doing"]) is False
  assert store.column_order == ["todo", "doing", "done"]
  assert [c["order"] for c in store.columns] == [0, 1, 2]

  api.fail = ApiError(status_code=403, message="Not authorized to access this project")
  assert await store.delete_task("t1") is False
  assert _ids(store, "todo") == ["t1", "t2"]
  assert store.tasks["t1"]["title"] == "one"
  assert store.refetches == 1


@pytest.mark.anyio
async def test_local_validation_never_calls_the_server() -> None:
  api = FakeApi(_board())
  store = await _store(api)
  calls = len(api.calls)

  assert await store.reorder_columns(["todo", "doing"]) is False
  assert store.error == "Column order must include every column exactly once"
  assert await store.move_task("t1", "nope", 0) is False
  assert store.error == "Column not found"
  assert await store.create_column("   ") is None
  assert len(api.calls) == calls


@pytest.mark.anyio
async def test_create_column_swaps_placeholder_id() -> None:
  api = FakeApi(_board())
  store = await _store(api)
  col = await store.create_column("Review")
  assert col["id"] == "server-col"
  assert store.column_order[-1] == "server-col"
  assert [c["title"] for c in store.ordered_columns()] == ["To Do", "In Progress", "Done", "Review"]

  api.fail = ApiError(status_code=500, message="boom")
  assert await store.create_column("QA") is None
  assert len(store.columns) == 4


@pytest.mark.anyio
async def test_apply_remote_events() -> None:
  api = FakeApi(_board())
  store = await _store(api)

  assert await store.apply_remote("task:moved", {"boardId": "other", "taskId": "t1"}) is False
  assert await store.apply_remote("no:such", {"boardId": "b1"}) is False

  await store.apply_remote(
    "task:created", {"boardId": "b1", "version": 4, "task": {"id": "t4", "title": "four", "columnId": "doing", "order": 0}}
  )
  assert _ids(store, "doing") == ["t4"]
  assert store.version == 4

  await store.apply_remote("task:updated", {"boardId": "b1", "task": {"id": "t4", "title": "FOUR", "columnId": "todo"}})
  assert store.tasks["t4"]["title"] == "FOUR"
  assert store.tasks["t4"]["columnId"] == "doing"

  await store.apply_remote("task:deleted", {"boardId": "b1", "taskId": "t1", "version": 6})
  assert _ids(store, "todo") == ["t2"]
  assert store.tasks["t2"]["order"] == 0

  await store.load_comments("t2")
  await store.apply_remote("comment:added", {"boardId": "b1", "taskId": "t2", "comment": {"id": "c2", "content": "new"}})
  assert [c["id"] for c in store.comments["t2"]] == ["c1", "c2"]
  await store.apply_remote("comment:deleted", {"boardId": "b1", "taskId": "t2", "commentId": "c1"})
  assert [c["id"] for c in store.comments["t2"]] == ["c2"]

  new_cols = copy.deepcopy(store.columns)[1:]
  await store.apply_remote(
    "board:updated",
    {"boardId": "b1", "action": "column_deleted", "columns": new_cols, "columnOrder": ["doing", "done"], "deletedTaskIds": ["t2"]},
  )
  assert store.column_order == ["doing", "done"]
  assert "t2" not in store.tasks

  # an unknown task forces a refetch
  refetches = store.refetches
  await store.apply_remote("task:moved", {"boardId": "b1", "taskId": "ghost", "destColumnId": "doing", "destIndex": 0})
  assert store.refetches == refetches + 1

  await store.apply_remote("board:deleted", {"boardId": "b1"})
  assert store.deleted is True
  assert store.columns == []


def test_independent_stores_do_not_share_state() -> None:
  api = FakeApi(_board())
  a, b = BoardStore(api, "b1"), BoardStore(api, "b1")
  a.load(_board())
  assert b.columns == []
  assert a.log is not b.log
  assert a.log.entries == []


@pytest.mark.anyio
async def test_store_against_live_api(client) -> None:
  _, board = await create_project(client)
  todo = column_by_title(board, "To Do")["id"]
  done = column_by_title(board, "Done")["id"]
  doing = column_by_title(board, "In Progress")["id"]
  t = await create_task(client, board, todo, "Fix bug")

  api = TaskhiveApi(token=token("alice"), client=client)
  store = BoardStore(api, board["id"])
  await store.refresh()
  assert _ids(store, todo) == [t["id"]]

  assert await store.move_task(t["id"], done, 0) is True
  server = await get_board(client, board["id"])
  assert column_by_title(server, "Done")["taskIds"] == [t["id"]]
  assert store.version == server["version"]

  # another client moves the task before this store hears about it
  res = await client.put(f"/tasks/{t['id']}/move", json={"columnId": doing, "order": 0}, headers=auth("alice"))
  assert res.status_code == 200

  assert await store.move_task(t["id"], todo, 0) is False
  assert "reload and retry" in store.error
  assert _ids(store, done) == [t["id"]]

  await store.refresh()
  assert _ids(store, doing) == [t["id"]]
  assert await store.reorder_columns([done, doing, todo]) is True
  assert (await get_board(client, board["id"]))["columnOrder"] == [done, doing, todo]

  col = await store.create_column("Review")
  assert col["title"] == "Review"
  assert store.column_order == (await get_board(client, board["id"]))["columnOrder"]

  assert await store.delete_task(t["id"]) is True
  res = await client.get(f"/tasks/{t['id']}", headers=auth("alice"))
  assert res.status_code == 404

  with pytest.raises(ApiError) as exc:
    await api.get_board("00000000-0000-4000-8000-00000000f00d")
  assert exc.value.status_code == 404
  assert exc.value.message == "Board not found"
  await api.aclose()
