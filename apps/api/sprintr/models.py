from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


# Native uuid/jsonb on PostgreSQL, plain columns elsewhere (SQLite in tests).
IdType = String(36).with_variant(UUID(as_uuid=False), "postgresql")
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
  pass


class Workspace(Base):
  __tablename__ = "workspaces"

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  name: Mapped[str] = mapped_column(String, nullable=False)
  user_id: Mapped[str] = mapped_column(IdType, nullable=False, index=True)
  image_id: Mapped[str | None] = mapped_column(String, nullable=True)
  invite_code: Mapped[str] = mapped_column(String(16), nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Member(Base):
  __tablename__ = "members"
  __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="ux_members_workspace_user"),)

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  workspace_id: Mapped[str] = mapped_column(IdType, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(IdType, nullable=False, index=True)
  role: Mapped[str] = mapped_column(String, nullable=False, default="MEMBER")  # ADMIN | MEMBER
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  workspace_id: Mapped[str] = mapped_column(IdType, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  image_id: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"
  __table_args__ = (UniqueConstraint("project_id", "name", name="ux_tasks_project_name"),)

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  workspace_id: Mapped[str] = mapped_column(IdType, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
  project_id: Mapped[str] = mapped_column(IdType, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
  reporter_id: Mapped[str | None] = mapped_column(IdType, nullable=True)
  assignee_id: Mapped[str] = mapped_column(IdType, nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  summary: Mapped[str] = mapped_column(Text, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  work_type: Mapped[str | None] = mapped_column(String, nullable=True)
  priority: Mapped[str | None] = mapped_column(String, nullable=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
  attachments: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class TaskComment(Base):
  __tablename__ = "task_comments"

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(IdType, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  member_id: Mapped[str] = mapped_column(IdType, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  attachments: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class TaskHistory(Base):
  __tablename__ = "task_history"

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(IdType, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  member_id: Mapped[str] = mapped_column(IdType, nullable=False)
  field: Mapped[str] = mapped_column(String, nullable=False)
  from_value: Mapped[str | None] = mapped_column(Text, nullable=True)
  to_value: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Notification(Base):
  __tablename__ = "notifications"

  id: Mapped[str] = mapped_column(IdType, primary_key=True, default=new_id)
  user_id: Mapped[str] = mapped_column(IdType, nullable=False, index=True)
  workspace_id: Mapped[str] = mapped_column(IdType, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
  actor_id: Mapped[str | None] = mapped_column(IdType, nullable=True)
  task_id: Mapped[str | None] = mapped_column(IdType, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
  type: Mapped[str] = mapped_column(String, nullable=False)  # task_assigned | task_created | comment_added | mentioned
  title: Mapped[str] = mapped_column(String, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False, default="")
  link: Mapped[str | None] = mapped_column(String, nullable=True)
  metadata_: Mapped[dict] = mapped_column("metadata", JsonType, nullable=False, default=dict)
  read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
