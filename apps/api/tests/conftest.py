from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{ROOT / 'taskhive_test.db'}")
os.environ.setdefault("APP_SECRET", "test-secret-not-for-production")
os.environ.setdefault("TRUSTED_HOSTS", "localhost,127.0.0.1,test,testserver")

from taskhive.config import settings
from taskhive.main import app
from taskhive.models import Base, User
from taskhive.security import create_access_token

# name -> (id, email, display name, global role)
USERS = {
  "admin": ("00000000-0000-4000-8000-000000000001", "admin@taskhive.local", "Admin", "admin"),
  "alice": ("00000000-0000-4000-8000-000000000002", "alice@taskhive.local", "Alice Smith", "member"),
  "bob": ("00000000-0000-4000-8000-000000000003", "bob@example.com", "Bob", "member"),
  "carol": ("00000000-0000-4000-8000-000000000004", "carol.jones@example.com", "Carol Jones", "member"),
}

_sync_engine = create_engine(settings.database_url.replace("+aiosqlite", ""), poolclass=NullPool)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


def _reset_db() -> None:
  Base.metadata.drop_all(_sync_engine)
  Base.metadata.create_all(_sync_engine)
  with Session(_sync_engine) as db:
    for uid_, email, name, role in USERS.values():
      db.add(User(id=uid_, email=email, name=name, role=role))
    db.commit()


@pytest.fixture(autouse=True)
def _clean_between_tests():
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskhive_test)."
    )
  _reset_db()
  yield
  Base.metadata.drop_all(_sync_engine)


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


def uid(name: str) -> str:
  return USERS[name][0]


def token(name: str) -> str:
  return create_access_token(uid(name))


def auth(name: str, *, socket_id: str | None = None) -> dict[str, str]:
  h = {"Authorization": f"Bearer {token(name)}"}
  if socket_id:
    h["X-Socket-Id"] = socket_id
  return h


async def create_project(client: AsyncClient, name: str = "Eng", *, as_user: str = "alice") -> tuple[dict, dict]:
  res = await client.post("/projects", json={"name": name, "description": ""}, headers=auth(as_user))
  assert res.status_code == 201, res.text
  body = res.json()
  return body["project"], body["board"]


async def add_member(client: AsyncClient, project_id: str, name: str, role: str = "member", *, as_user: str = "alice") -> dict:
  res = await client.post(f"/projects/{project_id}/members", json={"userId": uid(name), "role": role}, headers=auth(as_user))
  assert res.status_code == 200, res.text
  return res.json()


async def create_task(client: AsyncClient, board: dict, column_id: str, title: str, *, as_user: str = "alice", **fields) -> dict:
  res = await client.post(
    "/tasks",
    json={"title": title, "boardId": board["id"], "columnId": column_id, **fields},
    headers=auth(as_user),
  )
  assert res.status_code == 201, res.text
  return res.json()


async def get_board(client: AsyncClient, board_id: str, *, as_user: str = "alice") -> dict:
  res = await client.get(f"/boards/{board_id}", headers=auth(as_user))
  assert res.status_code == 200, res.text
  return res.json()


def column_by_title(board: dict, title: str) -> dict:
  return next(c for c in board["columns"] if c["title"] == title)


def assert_board_consistent(board: dict) -> None:
  ids = [c["id"] for c in board["columns"]]
  assert sorted(ids) == sorted(board["columnOrder"])
  assert len(set(board["columnOrder"])) == len(board["columnOrder"])
  tasks = {t["id"]: t for t in board.get("tasks") or []}
  seen: set[str] = set()
  for c in board["columns"]:
    for idx, tid in enumerate(c["taskIds"]):
      assert tid not in seen
      seen.add(tid)
      if tasks:
        assert tasks[tid]["columnId"] == c["id"]
        assert tasks[tid]["order"] == idx
  if tasks:
    assert seen == set(tasks)
