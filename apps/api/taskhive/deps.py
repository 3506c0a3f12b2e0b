from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db import SessionLocal
from taskhive.models import User
from taskhive.security import InvalidTokenError, bearer_token, decode_access_token


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def load_user_for_token(db: AsyncSession, token: str | None) -> User:
  try:
    user_id = decode_access_token(token or "")
  except InvalidTokenError as exc:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  token = bearer_token(request.headers.get("authorization"))
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  return await load_user_for_token(db, token)


def origin_connection_id(x_socket_id: str | None = Header(default=None)) -> str | None:
  # Realtime connection that issued this request; it already applied the change locally.
  return (x_socket_id or "").strip() or None
