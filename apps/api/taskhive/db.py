from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from taskhive.config import settings


def _engine_kwargs(url: str) -> dict:
  kwargs: dict = {"echo": settings.sql_echo, "future": True}
  if url.startswith("sqlite"):
    # aiosqlite connections must not be shared across event loops (tests, TestClient portals).
    kwargs["poolclass"] = NullPool
  else:
    kwargs.update(pool_size=20, max_overflow=0, pool_pre_ping=True, pool_recycle=3600)
  return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

SessionLocal = async_sessionmaker(
  engine,
  class_=AsyncSession,
  expire_on_commit=False,
  autoflush=False,
)


async def init_models() -> None:
  from taskhive.models import Base

  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)

