"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("avatar_url", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "projects",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("owner_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_projects_owner_id", "projects", ["owner_id"], unique=False)

  op.create_table(
    "project_members",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("project_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("project_id", "user_id", name="ux_project_member_project_user"),
  )
  op.create_index("ix_project_members_project_id", "project_members", ["project_id"], unique=False)
  op.create_index("ix_project_members_user_id", "project_members", ["user_id"], unique=False)

  op.create_table(
    "boards",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("project_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("columns", postgresql.JSONB(), nullable=False),
    sa.Column("column_order", postgresql.JSONB(), nullable=False),
    sa.Column("version", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_boards_project_id", "boards", ["project_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("board_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("boards.id"), nullable=False),
    sa.Column("column_id", sa.String(), nullable=False),
    sa.Column("order_index", sa.Integer(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("assigned_to", postgresql.JSONB(), nullable=False),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("labels", postgresql.JSONB(), nullable=False),
    sa.Column("created_by", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_board_id", "tasks", ["board_id"], unique=False)
  op.create_index("ix_tasks_column_id", "tasks", ["column_id"], unique=False)

  op.create_table(
    "comments",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("task_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("author_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("mentions", postgresql.JSONB(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_comments_task_id", "comments", ["task_id"], unique=False)

  op.create_table(
    "activities",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("actor_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("action", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=False),
    sa.Column("project_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("board_id", postgresql.UUID(as_uuid=False), nullable=True),
    sa.Column("data", postgresql.JSONB(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_activities_entity_id", "activities", ["entity_id"], unique=False)
  op.create_index("ix_activities_project_id", "activities", ["project_id"], unique=False)
  op.create_index("ix_activities_board_id", "activities", ["board_id"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("recipient_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("sender_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=False),
    sa.Column("project_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("projects.id"), nullable=True),
    sa.Column("read", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"], unique=False)
  op.create_index("ix_notifications_project_id", "notifications", ["project_id"], unique=False)


def downgrade() -> None:
  op.drop_table("notifications")
  op.drop_table("activities")
  op.drop_table("comments")
  op.drop_table("tasks")
  op.drop_table("boards")
  op.drop_table("project_members")
  op.drop_table("projects")
  op.drop_table("users")
