from __future__ import annotations

import asyncio

from alembic import context
from sqlalchemy.engine import Connection

from taskhive.config import settings
from taskhive.db import engine
from taskhive.models import Base

target_metadata = Base.metadata


def run_migrations_offline() -> None:
  context.configure(url=settings.database_url, target_metadata=target_metadata, literal_binds=True)
  with context.begin_transaction():
    context.run_migrations()


def _run(connection: Connection) -> None:
  context.configure(connection=connection, target_metadata=target_metadata)
  with context.begin_transaction():
    context.run_migrations()


async def run_migrations_online() -> None:
  async with engine.connect() as conn:
    await conn.run_sync(_run)


if context.is_offline_mode():
  run_migrations_offline()
else:
  asyncio.run(run_migrations_online())
