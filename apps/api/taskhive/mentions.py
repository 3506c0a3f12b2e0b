from __future__ import annotations

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.models import ProjectMember, User

MENTION_RE = re.compile(r"@([a-zA-Z0-9_-]+)")


def mention_tokens(content: str | None) -> set[str]:
  return {m.lower() for m in MENTION_RE.findall(content or "")}


def mention_tokens_for_user(*, name: str | None, email: str | None) -> set[str]:
  tokens: set[str] = set()
  if name:
    nm = str(name).strip().lower()
    if nm:
      tokens.add(nm.replace(" ", ""))
  if email:
    local = str(email).strip().lower().split("@", 1)[0]
    if local:
      tokens.add(local)
  return tokens


async def resolve_mentions(db: AsyncSession, *, project_id: str, content: str | None) -> list[str]:
  """User ids of project members addressed by ``@name`` tokens in ``content``."""
  tokens = mention_tokens(content)
  if not tokens:
    return []
  res = await db.execute(
    select(User)
    .join(ProjectMember, ProjectMember.user_id == User.id)
    .where(ProjectMember.project_id == project_id)
    .order_by(ProjectMember.position.asc())
  )
  out: list[str] = []
  for u in res.scalars().all():
    if tokens & mention_tokens_for_user(name=u.name, email=u.email) and u.id not in out:
      out.append(u.id)
  return out
