from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from sprintr.task_fields import MemberRole, TaskPriority, TaskStatus, TaskWorkType

T = TypeVar("T")

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
UrlStr = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^https?://\S+$")]


def _as_utc(value: object) -> object:
  # SQLite hands back naive datetimes; everything is stored as UTC.
  if isinstance(value, datetime) and value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  if isinstance(value, datetime):
    return value.astimezone(timezone.utc)
  return value


class DataOut(BaseModel, Generic[T]):
  data: T


class DocumentOut(BaseModel):
  """Base for API documents: `$id`, `$createdAt`, `$updatedAt` plus camelCase fields."""

  model_config = ConfigDict(populate_by_name=True)

  id: str = Field(alias="$id")
  createdAt: datetime = Field(alias="$createdAt")
  updatedAt: datetime = Field(alias="$updatedAt")

  @field_validator("createdAt", "updatedAt", mode="before")
  @classmethod
  def _utc(cls, v: object) -> object:
    return _as_utc(v)


class DocumentListOut(BaseModel, Generic[T]):
  documents: list[T]
  total: int


# ---- auth ----


class SessionUserOut(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: str = Field(alias="$id")
  name: str
  email: str


class LoginIn(BaseModel):
  email: NonEmptyStr
  password: str = Field(min_length=1)


class RegisterIn(BaseModel):
  name: NonEmptyStr
  email: NonEmptyStr
  password: str = Field(min_length=8, max_length=256)


class SessionIn(BaseModel):
  accessToken: NonEmptyStr
  refreshToken: NonEmptyStr


class SuccessOut(BaseModel):
  success: bool = True


class RegisterOut(BaseModel):
  success: bool
  needsConfirmation: bool


# ---- workspaces / members / projects ----


class MemberOut(DocumentOut):
  workspaceId: str
  userId: str
  role: str
  name: str = ""
  email: str = ""


class WorkspaceOut(DocumentOut):
  name: str
  userId: str
  imageId: str | None = None
  imageUrl: str | None = None
  inviteCode: str


class WorkspaceInfoOut(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: str = Field(alias="$id")
  name: str
  imageUrl: str | None = None


class DeletedOut(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: str = Field(alias="$id")
  workspaceId: str | None = None


class WorkspaceJoinIn(BaseModel):
  code: NonEmptyStr


class MemberRoleIn(BaseModel):
  role: MemberRole


class ProjectOut(DocumentOut):
  workspaceId: str
  name: str
  imageId: str | None = None
  imageUrl: str | None = None


class AnalyticsOut(BaseModel):
  taskCount: int
  taskDifference: int
  assignedTaskCount: int
  assignedTaskDifference: int
  completedTaskCount: int
  completedTaskDifference: int
  incompleteTaskCount: int
  incompleteTaskDifference: int
  overdueTaskCount: int
  overdueTaskDifference: int


# ---- tasks ----


class TaskOut(DocumentOut):
  workspaceId: str
  projectId: str
  reporterId: str | None = None
  assigneeId: str
  name: str
  summary: str
  description: str | None = None
  status: str
  workType: str | None = None
  priority: str | None = None
  position: int
  attachments: list[str] = Field(default_factory=list)
  project: ProjectOut | None = None
  assignee: MemberOut | None = None
  reporter: MemberOut | None = None


class TaskCreateIn(BaseModel):
  summary: NonEmptyStr
  status: TaskStatus
  workType: TaskWorkType
  priority: TaskPriority
  workspaceId: NonEmptyStr
  projectId: NonEmptyStr
  assigneeId: NonEmptyStr
  description: str | None = None
  attachments: list[UrlStr] | None = None


class TaskUpdateIn(BaseModel):
  summary: NonEmptyStr | None = None
  status: TaskStatus | None = None
  workType: TaskWorkType | None = None
  priority: TaskPriority | None = None
  projectId: NonEmptyStr | None = None
  assigneeId: NonEmptyStr | None = None
  description: str | None = None
  attachments: list[UrlStr] | None = None


class BulkTaskIn(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: NonEmptyStr = Field(alias="$id")
  status: TaskStatus
  position: int = Field(ge=1000, le=100_000)


class BulkUpdateIn(BaseModel):
  tasks: list[BulkTaskIn]


class BulkUpdateOut(BaseModel):
  updatedTasks: list[TaskOut]
  workspaceId: str


class CommentOut(DocumentOut):
  taskId: str
  memberId: str
  body: str
  attachments: list[str] = Field(default_factory=list)
  author: MemberOut | None = None


class CommentCreateIn(BaseModel):
  body: NonEmptyStr
  attachments: list[UrlStr] | None = None


class HistoryOut(DocumentOut):
  taskId: str
  memberId: str
  field: str
  fromValue: str | None = None
  toValue: str | None = None
  actor: MemberOut | None = None


# ---- notifications ----


class NotificationOut(DocumentOut):
  userId: str
  workspaceId: str
  actorId: str | None = None
  taskId: str | None = None
  type: str
  title: str
  body: str
  link: str | None = None
  metadata: dict[str, Any] = Field(default_factory=dict)
  readAt: datetime | None = None

  @field_validator("readAt", mode="before")
  @classmethod
  def _utc_read_at(cls, v: object) -> object:
    return _as_utc(v)


class NotificationListOut(BaseModel):
  documents: list[NotificationOut]
  unreadCount: int


class NotificationsReadIn(BaseModel):
  workspaceId: str | None = None
