from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from pydantic import field_validator


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


class UserOut(BaseModel):
  id: str
  email: str
  name: str
  role: str
  avatarUrl: str | None = None
  createdAt: datetime


class UserSummaryOut(BaseModel):
  id: str
  name: str
  email: str
  avatarUrl: str | None = None


class UserProfileIn(BaseModel):
  name: str | None = Field(default=None, max_length=200)
  avatarUrl: str | None = Field(default=None, max_length=2000)


class MemberOut(BaseModel):
  userId: str
  role: str
  name: str | None = None
  email: str | None = None


class ProjectOut(BaseModel):
  id: str
  name: str
  description: str
  ownerId: str
  members: list[MemberOut]
  createdAt: datetime
  updatedAt: datetime


class ProjectCreateIn(BaseModel):
  name: str = Field(max_length=200)
  description: str = ""


class ProjectUpdateIn(BaseModel):
  name: str | None = Field(default=None, max_length=200)
  description: str | None = None


class MemberAddIn(BaseModel):
  userId: str
  role: str = "member"


class MemberUpdateIn(BaseModel):
  role: str


class ColumnOut(BaseModel):
  id: str
  title: str
  order: int
  taskIds: list[str]


class LabelIn(BaseModel):
  name: str
  color: str | None = None


class LabelOut(BaseModel):
  name: str
  color: str


class TaskOut(BaseModel):
  id: str
  boardId: str
  columnId: str
  order: int
  title: str
  description: str
  assignedTo: list[str]
  dueDate: datetime | None
  labels: list[LabelOut]
  createdBy: str
  createdAt: datetime
  updatedAt: datetime


class BoardOut(BaseModel):
  id: str
  projectId: str
  title: str
  description: str
  columns: list[ColumnOut]
  columnOrder: list[str]
  version: int
  createdAt: datetime
  updatedAt: datetime
  tasks: list[TaskOut] | None = None


class ProjectCreateOut(BaseModel):
  project: ProjectOut
  board: BoardOut


class BoardCreateIn(BaseModel):
  title: str = Field(max_length=200)
  projectId: str
  description: str = ""


class BoardUpdateIn(BaseModel):
  title: str | None = Field(default=None, max_length=200)
  description: str | None = None
  boardVersion: int | None = None


class ColumnCreateIn(BaseModel):
  title: str = Field(max_length=200)
  boardVersion: int | None = None


class ColumnRenameIn(BaseModel):
  title: str = Field(max_length=200)
  boardVersion: int | None = None


class ColumnReorderIn(BaseModel):
  columnOrder: list[str]
  boardVersion: int | None = None


class TaskCreateIn(BaseModel):
  title: str = Field(max_length=500)
  boardId: str
  columnId: str
  description: str = ""
  assignedTo: list[str] = []
  dueDate: datetime | None = None
  labels: list[LabelIn] = []
  boardVersion: int | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, max_length=500)
  description: str | None = None
  assignedTo: list[str] | None = None
  dueDate: datetime | None = None
  labels: list[LabelIn] | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskMoveIn(BaseModel):
  columnId: str
  # Validated by the engine so a non-integer position is a 400 like other bad input.
  order: Any = 0
  sourceColumnId: str | None = None
  sourceIndex: Any = None
  boardVersion: int | None = None


class TaskMoveOut(BaseModel):
  task: TaskOut
  board: BoardOut


class CommentOut(BaseModel):
  id: str
  taskId: str
  authorId: str
  author: UserSummaryOut | None = None
  content: str
  mentions: list[str]
  createdAt: datetime
  updatedAt: datetime


class CommentCreateIn(BaseModel):
  taskId: str
  content: str = Field(max_length=10000)


class CommentUpdateIn(BaseModel):
  content: str = Field(max_length=10000)


class ActivityOut(BaseModel):
  id: str
  actorId: str
  action: str
  entityType: str
  entityId: str
  projectId: str
  boardId: str | None
  data: dict[str, Any]
  createdAt: datetime


class NotificationOut(BaseModel):
  id: str
  recipientId: str
  senderId: str | None
  type: str
  message: str
  entityType: str
  entityId: str
  projectId: str | None
  read: bool
  createdAt: datetime
