from __future__ import annotations

import pytest
from sqlalchemy import func, select

from taskhive.db import SessionLocal
from taskhive.models import Board, Project, Task, User
from taskhive.security import decode_access_token
from taskhive.seed import DEMO_PROJECT, seed


@pytest.mark.anyio
async def test_seed_is_idempotent(monkeypatch) -> None:
  monkeypatch.setenv("SEED_DEMO_PROJECT", "1")
  tokens = await seed()
  again = await seed()
  assert set(tokens) == set(again) == {"admin@taskhive.local", "member@taskhive.local"}

  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.email == "member@taskhive.local"))
    member = res.scalar_one()
    assert decode_access_token(tokens["member@taskhive.local"]) == member.id

    projects = (await db.execute(select(Project).where(Project.name == DEMO_PROJECT))).scalars().all()
    assert len(projects) == 1
    board = (await db.execute(select(Board).where(Board.project_id == projects[0].id))).scalar_one()
    n = (await db.execute(select(func.count()).select_from(Task).where(Task.board_id == board.id))).scalar_one()
    assert n == 4
    assert [len(c["taskIds"]) for c in board.columns] == [2, 1, 1]


@pytest.mark.anyio
async def test_seed_without_demo_project(monkeypatch) -> None:
  monkeypatch.delenv("SEED_DEMO_PROJECT", raising=False)
  await seed()
  async with SessionLocal() as db:
    assert (await db.execute(select(func.count()).select_from(Project))).scalar_one() == 0
