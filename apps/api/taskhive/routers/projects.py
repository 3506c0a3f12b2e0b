from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive import cascade, engine
from taskhive.access import require_project_admin, require_project_member, valid_id
from taskhive.activity import notify, write_activity
from taskhive.deps import get_current_user, get_db, origin_connection_id
from taskhive.errors import NotFoundError, ValidationError
from taskhive.models import Activity, Board, Project, ProjectMember, User
from taskhive.realtime import project_room, schedule_broadcast
from taskhive.schemas import (
  ActivityOut,
  BoardOut,
  MemberAddIn,
  MemberUpdateIn,
  ProjectCreateIn,
  ProjectCreateOut,
  ProjectOut,
  ProjectUpdateIn,
)
from taskhive.serializers import activity_out, board_out, project_out

router = APIRouter(prefix="/projects", tags=["projects"])

DEFAULT_BOARD_TITLE = "Main Board"
ASSIGNABLE_ROLES = ("admin", "member")


def _member_role(role: str | None) -> str:
  r = (role or "").strip().lower()
  if r not in ASSIGNABLE_ROLES:
    raise ValidationError("Role must be admin or member")
  return r


async def _get_member(db: AsyncSession, project_id: str, user_id: str) -> ProjectMember:
  if not valid_id(user_id):
    raise NotFoundError("Member not found")
  res = await db.execute(
    select(ProjectMember).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
  )
  m = res.scalar_one_or_none()
  if not m:
    raise NotFoundError("Member not found")
  return m


@router.post("", response_model=ProjectCreateOut, status_code=status.HTTP_201_CREATED)
async def create_project(
  payload: ProjectCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ProjectCreateOut:
  name = payload.name.strip()
  if not name:
    raise ValidationError("Project name is required")
  p = Project(name=name, description=payload.description.strip(), owner_id=user.id)
  db.add(p)
  await db.flush()
  db.add(ProjectMember(project_id=p.id, user_id=user.id, role="owner", position=0))
  b = await engine.create_board(db, project_id=p.id, title=DEFAULT_BOARD_TITLE)
  await write_activity(
    db, actor_id=user.id, action="created", entity_type="project", entity_id=p.id, project_id=p.id, data={"projectName": name}
  )
  await db.commit()
  return ProjectCreateOut(project=await project_out(db, p), board=board_out(b))


@router.get("", response_model=list[ProjectOut])
async def list_projects(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ProjectOut]:
  res = await db.execute(
    select(Project)
    .join(ProjectMember, ProjectMember.project_id == Project.id)
    .where(ProjectMember.user_id == user.id)
    .order_by(Project.updated_at.desc())
  )
  return [await project_out(db, p) for p in res.scalars().all()]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  access = await require_project_member(db, project_id, user)
  return await project_out(db, access.project)


@router.put("/{project_id}", response_model=ProjectOut)
async def update_project(
  project_id: str,
  payload: ProjectUpdateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> ProjectOut:
  access = await require_project_admin(db, project_id, user)
  p = access.project
  if payload.name is not None:
    name = payload.name.strip()
    if not name:
      raise ValidationError("Project name is required")
    p.name = name
  if payload.description is not None:
    p.description = payload.description.strip()
  await write_activity(
    db, actor_id=user.id, action="updated", entity_type="project", entity_id=p.id, project_id=p.id, data={"projectName": p.name}
  )
  await db.commit()
  out = await project_out(db, p)
  schedule_broadcast(background, project_room(p.id), "project:updated", out, exclude=origin)
  return out


@router.delete("/{project_id}")
async def delete_project(
  project_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> dict:
  access = await require_project_admin(db, project_id, user)
  await cascade.delete_project_everything(db, project_id=access.project.id)
  await db.commit()
  schedule_broadcast(background, project_room(project_id), "project:deleted", {"projectId": project_id}, exclude=origin)
  return {"ok": True}


@router.post("/{project_id}/members", response_model=ProjectOut)
async def add_member(
  project_id: str,
  payload: MemberAddIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> ProjectOut:
  access = await require_project_admin(db, project_id, user)
  p = access.project
  role = _member_role(payload.role)
  if not valid_id(payload.userId):
    raise NotFoundError("User not found")
  ures = await db.execute(select(User).where(User.id == payload.userId))
  member_user = ures.scalar_one_or_none()
  if not member_user:
    raise NotFoundError("User not found")

  exists = await db.execute(
    select(ProjectMember.id).where(ProjectMember.project_id == p.id, ProjectMember.user_id == member_user.id)
  )
  if exists.scalar_one_or_none():
    raise ValidationError("User is already a member of this project")

  pres = await db.execute(select(func.max(ProjectMember.position)).where(ProjectMember.project_id == p.id))
  position = (pres.scalar_one_or_none() or 0) + 1
  db.add(ProjectMember(project_id=p.id, user_id=member_user.id, role=role, position=position))
  await write_activity(
    db,
    actor_id=user.id,
    action="joined",
    entity_type="project",
    entity_id=p.id,
    project_id=p.id,
    data={"memberId": member_user.id, "memberName": member_user.name, "role": role},
  )
  await notify(
    db,
    recipient_id=member_user.id,
    sender_id=user.id,
    type="project_invitation",
    message=f"You have been added to the project \"{p.name}\"",
    entity_type="project",
    entity_id=p.id,
    project_id=p.id,
  )
  await db.commit()
  out = await project_out(db, p)
  schedule_broadcast(background, project_room(p.id), "project:updated", out, exclude=origin)
  return out


@router.put("/{project_id}/members/{member_id}", response_model=ProjectOut)
async def update_member(
  project_id: str,
  member_id: str,
  payload: MemberUpdateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> ProjectOut:
  access = await require_project_admin(db, project_id, user)
  p = access.project
  m = await _get_member(db, p.id, member_id)
  if m.role == "owner":
    raise ValidationError("Cannot change the role of the project owner")
  role = _member_role(payload.role)
  m.role = role
  await write_activity(
    db,
    actor_id=user.id,
    action="updated",
    entity_type="project",
    entity_id=p.id,
    project_id=p.id,
    data={"memberId": m.user_id, "role": role},
  )
  await notify(
    db,
    recipient_id=m.user_id,
    sender_id=user.id,
    type="project_update",
    message=f"Your role in the project \"{p.name}\" is now {role}",
    entity_type="project",
    entity_id=p.id,
    project_id=p.id,
  )
  await db.commit()
  out = await project_out(db, p)
  schedule_broadcast(background, project_room(p.id), "project:updated", out, exclude=origin)
  return out


@router.delete("/{project_id}/members/{member_id}", response_model=ProjectOut)
async def remove_member(
  project_id: str,
  member_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  origin: str | None = Depends(origin_connection_id),
) -> ProjectOut:
  # members may leave on their own; removing someone else needs admin
  if member_id == user.id:
    access = await require_project_member(db, project_id, user)
  else:
    access = await require_project_admin(db, project_id, user)
  p = access.project
  m = await _get_member(db, p.id, member_id)
  if m.role == "owner":
    raise ValidationError("Cannot remove the project owner")
  await db.delete(m)
  await write_activity(
    db,
    actor_id=user.id,
    action="left",
    entity_type="project",
    entity_id=p.id,
    project_id=p.id,
    data={"memberId": m.user_id},
  )
  await db.commit()
  out = await project_out(db, p)
  schedule_broadcast(background, project_room(p.id), "project:updated", out, exclude=origin)
  return out


@router.get("/{project_id}/boards", response_model=list[BoardOut])
async def list_project_boards(
  project_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[BoardOut]:
  access = await require_project_member(db, project_id, user)
  res = await db.execute(select(Board).where(Board.project_id == access.project.id).order_by(Board.created_at.asc()))
  return [board_out(b) for b in res.scalars().all()]


@router.get("/{project_id}/activity", response_model=list[ActivityOut])
async def list_project_activity(
  project_id: str,
  limit: int = 50,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
  access = await require_project_member(db, project_id, user)
  limit = max(1, min(int(limit), 200))
  res = await db.execute(
    select(Activity)
    .where(Activity.project_id == access.project.id)
    .order_by(Activity.created_at.desc())
    .limit(limit)
  )
  return [activity_out(a) for a in res.scalars().all()]
