from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from sprintr.auth.provider import AuthProvider, AuthUser, display_name
from sprintr.errors import AuthorizationFailure, ExternalServiceError
from sprintr.models import Member
from sprintr.notifications.service import MailProvider
from sprintr.repositories import (
  CommentRepository,
  HistoryRepository,
  MemberRepository,
  NotificationRepository,
  ProjectRepository,
  TaskRepository,
  WorkspaceRepository,
)
from sprintr.storage import StorageClient
from sprintr.task_fields import MemberRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
  id: str
  name: str
  email: str

  @classmethod
  def from_auth_user(cls, user: AuthUser) -> SessionUser:
    return cls(id=user.id, name=display_name(user), email=user.email or "")


@dataclass(frozen=True)
class MemberIdentity:
  member_id: str
  user_id: str
  name: str
  email: str


@dataclass
class RequestContext:
  """Per-request collaborators, passed explicitly to route helpers."""

  db: AsyncSession
  user: SessionUser
  auth: AuthProvider
  storage: StorageClient
  mailer: MailProvider
  _identities: dict[str, AuthUser | None] = field(default_factory=dict, repr=False)

  def __post_init__(self) -> None:
    self.workspaces = WorkspaceRepository(self.db)
    self.members = MemberRepository(self.db)
    self.projects = ProjectRepository(self.db)
    self.tasks = TaskRepository(self.db)
    self.comments = CommentRepository(self.db)
    self.history = HistoryRepository(self.db)
    self.notifications = NotificationRepository(self.db)

  async def get_member(self, workspace_id: str) -> Member | None:
    return await self.members.get_for_user(workspace_id, self.user.id)

  async def require_member(self, workspace_id: str) -> Member:
    member = await self.get_member(workspace_id)
    if member is None:
      raise AuthorizationFailure()
    return member

  async def require_admin(self, workspace_id: str) -> Member:
    member = await self.get_member(workspace_id)
    if member is None or member.role != MemberRole.ADMIN.value:
      raise AuthorizationFailure()
    return member

  async def lookup_user(self, user_id: str) -> AuthUser | None:
    if user_id in self._identities:
      return self._identities[user_id]
    try:
      found = await self.auth.admin_get_user(user_id)
    except ExternalServiceError:
      logger.warning("user lookup failed user_id=%s", user_id, exc_info=True)
      found = None
    self._identities[user_id] = found
    return found

  async def identity_for(self, member: Member | None) -> MemberIdentity | None:
    if member is None:
      return None
    found = await self.lookup_user(member.user_id)
    return MemberIdentity(
      member_id=member.id,
      user_id=member.user_id,
      name=display_name(found),
      email=(found.email or "") if found else "",
    )

  async def member_identity(self, member_id: str | None) -> MemberIdentity | None:
    if not member_id:
      return None
    return await self.identity_for(await self.members.get(member_id))
