from __future__ import annotations

import pytest

from conftest import assert_board_consistent, auth, column_by_title, create_project, create_task, get_board

from taskhive import engine
from taskhive.access import get_board as load_board
from taskhive.access import get_task as load_task
from taskhive.db import SessionLocal
from taskhive.errors import ConflictError


@pytest.mark.anyio
async def test_second_writer_on_a_stale_board_loses(client) -> None:
  _, board = await create_project(client)
  todo, doing, done = board["columnOrder"]
  t1 = await create_task(client, board, todo, "one")
  t2 = await create_task(client, board, todo, "two")

  async with SessionLocal() as first, SessionLocal() as second:
    b1 = await load_board(first, board["id"])
    b2 = await load_board(second, board["id"])
    task1 = await load_task(first, t1["id"])
    task2 = await load_task(second, t2["id"])
    assert b1.version == b2.version

    await engine.move_task(first, b1, task1, dest_column_id=doing, dest_index=0)
    await first.commit()

    with pytest.raises(ConflictError):
      await engine.move_task(second, b2, task2, dest_column_id=done, dest_index=0)
    await second.rollback()

  state = await get_board(client, board["id"])
  assert column_by_title(state, "In Progress")["taskIds"] == [t1["id"]]
  assert column_by_title(state, "To Do")["taskIds"] == [t2["id"]]
  assert column_by_title(state, "Done")["taskIds"] == []
  assert_board_consistent(state)


@pytest.mark.anyio
async def test_stale_board_version_is_rejected(client) -> None:
  _, board = await create_project(client)
  todo, doing, _ = board["columnOrder"]
  t = await create_task(client, board, todo, "t")
  loaded = await get_board(client, board["id"])

  res = await client.post(f"/boards/{board['id']}/columns", json={"title": "Review"}, headers=auth("alice"))
  assert res.status_code == 201, res.text

  res = await client.put(
    f"/tasks/{t['id']}/move",
    json={"columnId": doing, "order": 0, "boardVersion": loaded["version"]},
    headers=auth("alice"),
  )
  assert res.status_code == 409, res.text

  fresh = await get_board(client, board["id"])
  assert column_by_title(fresh, "To Do")["taskIds"] == [t["id"]]

  res = await client.put(
    f"/tasks/{t['id']}/move",
    json={"columnId": doing, "order": 0, "boardVersion": fresh["version"]},
    headers=auth("alice"),
  )
  assert res.status_code == 200, res.text
  assert res.json()["board"]["version"] == fresh["version"] + 1


@pytest.mark.anyio
async def test_stale_version_on_column_reorder(client) -> None:
  _, board = await create_project(client)
  a, b, c = board["columnOrder"]
  res = await client.put(
    f"/boards/{board['id']}/columns/reorder",
    json={"columnOrder": [c, b, a], "boardVersion": board["version"] + 5},
    headers=auth("alice"),
  )
  assert res.status_code == 409
  assert (await get_board(client, board["id"]))["columnOrder"] == [a, b, c]


@pytest.mark.anyio
async def test_source_column_mismatch_is_a_conflict(client) -> None:
  _, board = await create_project(client)
  todo, doing, done = board["columnOrder"]
  t = await create_task(client, board, todo, "t")

  # someone else already moved it
  res = await client.put(f"/tasks/{t['id']}/move", json={"columnId": doing, "order": 0}, headers=auth("alice"))
  assert res.status_code == 200, res.text
  before = await get_board(client, board["id"])

  res = await client.put(
    f"/tasks/{t['id']}/move",
    json={"columnId": done, "order": 0, "sourceColumnId": todo, "sourceIndex": 0},
    headers=auth("alice"),
  )
  assert res.status_code == 409, res.text
  after = await get_board(client, board["id"])
  assert after["columns"] == before["columns"]
  assert after["version"] == before["version"]


@pytest.mark.anyio
async def test_source_index_mismatch_is_a_conflict(client) -> None:
  _, board = await create_project(client)
  todo, _, done = board["columnOrder"]
  a = await create_task(client, board, todo, "a")
  b = await create_task(client, board, todo, "b")

  # the client thinks "b" is still first
  res = await client.put(f"/tasks/{a['id']}/move", json={"columnId": done, "order": 0}, headers=auth("alice"))
  assert res.status_code == 200
  res = await client.put(
    f"/tasks/{b['id']}/move",
    json={"columnId": done, "order": 1, "sourceColumnId": todo, "sourceIndex": 1},
    headers=auth("alice"),
  )
  assert res.status_code == 409, res.text
  assert res.json()["detail"] == "Task is no longer at the source position; reload and retry"

  res = await client.put(
    f"/tasks/{b['id']}/move",
    json={"columnId": done, "order": 1, "sourceColumnId": todo, "sourceIndex": 0},
    headers=auth("alice"),
  )
  assert res.status_code == 200, res.text
  state = await get_board(client, board["id"])
  assert column_by_title(state, "Done")["taskIds"] == [a["id"], b["id"]]
