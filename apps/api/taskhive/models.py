from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


# Document-shaped values: JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JsonDoc = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String, nullable=False, default="member")
  avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  owner_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ProjectMember(Base):
  __tablename__ = "project_members"
  __table_args__ = (UniqueConstraint("project_id", "user_id", name="ux_project_member_project_user"),)

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
  role: Mapped[str] = mapped_column(String, nullable=False)  # owner | admin | member
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Board(Base):
  __tablename__ = "boards"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  project_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  # [{"id", "title", "order", "taskIds": [...]}, ...]
  columns: Mapped[list[dict[str, Any]]] = mapped_column(JsonDoc, nullable=False, default=list)
  column_order: Mapped[list[str]] = mapped_column(JsonDoc, nullable=False, default=list)
  version: Mapped[int] = mapped_column(Integer, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

  __mapper_args__ = {"version_id_col": version}


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  board_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("boards.id"), nullable=False, index=True)
  column_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  assigned_to: Mapped[list[str]] = mapped_column(JsonDoc, nullable=False, default=list)
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  labels: Mapped[list[dict[str, Any]]] = mapped_column(JsonDoc, nullable=False, default=list)
  created_by: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Comment(Base):
  __tablename__ = "comments"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("tasks.id"), nullable=False, index=True)
  author_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  mentions: Mapped[list[str]] = mapped_column(JsonDoc, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Activity(Base):
  __tablename__ = "activities"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  actor_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False)
  action: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  project_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True)
  # Not a foreign key: activity outlives the board it describes.
  board_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), nullable=True, index=True)
  data: Mapped[dict[str, Any]] = mapped_column(JsonDoc, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Notification(Base):
  __tablename__ = "notifications"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  recipient_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
  sender_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
  type: Mapped[str] = mapped_column(String, nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str] = mapped_column(String, nullable=False)
  project_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), ForeignKey("projects.id"), nullable=True, index=True)
  read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
