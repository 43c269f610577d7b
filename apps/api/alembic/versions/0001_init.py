"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
  return [
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  ]


def upgrade() -> None:
  op.create_table(
    "workspaces",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("image_id", sa.String(), nullable=True),
    sa.Column("invite_code", sa.String(length=16), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_workspaces_user_id", "workspaces", ["user_id"], unique=False)

  op.create_table(
    "members",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("workspace_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
    *_timestamps(),
  )
  op.create_index("ix_members_workspace_id", "members", ["workspace_id"], unique=False)
  op.create_index("ix_members_user_id", "members", ["user_id"], unique=False)
  op.create_unique_constraint("ux_members_workspace_user", "members", ["workspace_id", "user_id"])

  op.create_table(
    "projects",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("workspace_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("image_id", sa.String(), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_projects_workspace_id", "projects", ["workspace_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("workspace_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False),
    sa.Column("project_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    sa.Column("reporter_id", postgresql.UUID(as_uuid=False), nullable=True),
    sa.Column("assignee_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("summary", sa.Text(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("work_type", sa.String(), nullable=True),
    sa.Column("priority", sa.String(), nullable=True),
    sa.Column("position", sa.Integer(), nullable=False, server_default="1000"),
    sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
    *_timestamps(),
  )
  op.create_index("ix_tasks_workspace_id", "tasks", ["workspace_id"], unique=False)
  op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)
  op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"], unique=False)
  op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
  op.create_unique_constraint("ux_tasks_project_name", "tasks", ["project_id", "name"])

  op.create_table(
    "task_comments",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("task_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("member_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
    *_timestamps(),
  )
  op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"], unique=False)

  op.create_table(
    "task_history",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("task_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("member_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("field", sa.String(), nullable=False),
    sa.Column("from_value", sa.Text(), nullable=True),
    sa.Column("to_value", sa.Text(), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_task_history_task_id", "task_history", ["task_id"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
    sa.Column("workspace_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False),
    sa.Column("actor_id", postgresql.UUID(as_uuid=False), nullable=True),
    sa.Column("task_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False, server_default=""),
    sa.Column("link", sa.String(), nullable=True),
    sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
  op.create_index("ix_notifications_workspace_id", "notifications", ["workspace_id"], unique=False)
  op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "read_at"], unique=False)


def downgrade() -> None:
  op.drop_table("notifications")
  op.drop_table("task_history")
  op.drop_table("task_comments")
  op.drop_table("tasks")
  op.drop_table("projects")
  op.drop_table("members")
  op.drop_table("workspaces")
