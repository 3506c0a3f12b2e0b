from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.access import valid_id
from taskhive.deps import get_current_user, get_db
from taskhive.errors import NotFoundError, ValidationError
from taskhive.models import User
from taskhive.schemas import UserOut, UserProfileIn, UserSummaryOut
from taskhive.serializers import user_out, user_summary_out

router = APIRouter(prefix="/users", tags=["users"])

SEARCH_LIMIT = 20


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return user_out(user)


@router.get("/search", response_model=list[UserSummaryOut])
async def search_users(
  query: str = "",
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[UserSummaryOut]:
  q = query.strip().lower()
  if not q:
    return []
  pattern = f"%{q}%"
  res = await db.execute(
    select(User)
    .where(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))
    .order_by(User.name.asc())
    .limit(SEARCH_LIMIT)
  )
  return [user_summary_out(u) for u in res.scalars().all()]


@router.put("/profile", response_model=UserOut)
async def update_profile(
  payload: UserProfileIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> UserOut:
  if payload.name is not None:
    name = payload.name.strip()
    if not name:
      raise ValidationError("Name cannot be empty")
    user.name = name
  if payload.avatarUrl is not None:
    user.avatar_url = payload.avatarUrl.strip() or None
  await db.commit()
  return user_out(user)


@router.get("", response_model=list[UserOut])
async def list_users(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[UserOut]:
  if user.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin required")
  res = await db.execute(select(User).order_by(User.created_at.asc()))
  return [user_out(u) for u in res.scalars().all()]


@router.get("/{user_id}", response_model=UserSummaryOut)
async def get_user(user_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserSummaryOut:
  if not valid_id(user_id):
    raise NotFoundError("User not found")
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFoundError("User not found")
  return user_summary_out(u)
