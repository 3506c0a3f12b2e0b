from __future__ import annotations

import asyncio
import os

from sqlalchemy import select

from taskhive import engine
from taskhive.db import SessionLocal
from taskhive.models import Project, ProjectMember, User
from taskhive.security import create_access_token

DEMO_PROJECT = "Taskhive Demo"


async def _ensure_user(db, *, email: str, name: str, role: str) -> User:
  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u:
    u = User(email=email, name=name, role=role, avatar_url=None)
    db.add(u)
    await db.flush()
  return u


async def seed() -> dict[str, str]:
  """Create the bootstrap users (and optionally a demo project). Returns email -> access token."""
  async with SessionLocal() as db:
    admin = await _ensure_user(db, email="admin@taskhive.local", name="Admin", role="admin")
    member = await _ensure_user(db, email="member@taskhive.local", name="Member", role="member")

    if os.getenv("SEED_DEMO_PROJECT", "").strip().lower() in ("1", "true", "yes", "y"):
      pres = await db.execute(select(Project).where(Project.name == DEMO_PROJECT, Project.owner_id == admin.id))
      project = pres.scalar_one_or_none()
      if not project:
        project = Project(name=DEMO_PROJECT, description="Sample project", owner_id=admin.id)
        db.add(project)
        await db.flush()
        db.add(ProjectMember(project_id=project.id, user_id=admin.id, role="owner", position=0))
        db.add(ProjectMember(project_id=project.id, user_id=member.id, role="member", position=1))
        board = await engine.create_board(db, project_id=project.id, title="Main Board")
        todo, doing, done = board.column_order
        samples = [
          (todo, "Welcome to Taskhive", "Open a task to edit it, or drag it to another column."),
          (todo, "Mention a teammate", "Write @member in a comment to notify them."),
          (doing, "Try moving tasks", "Moves are broadcast to everyone viewing this board."),
          (done, "Done example", "A completed task."),
        ]
        for column_id, title, desc in samples:
          await engine.create_task(db, board, column_id=column_id, title=title, description=desc, created_by=admin.id)

    await db.commit()
    return {u.email: create_access_token(u.id) for u in (admin, member)}


def main() -> None:
  tokens = asyncio.run(seed())
  print("Taskhive seed users:")
  for email, token in tokens.items():
    print(f"  {email}  token={token}")


if __name__ == "__main__":
  main()
