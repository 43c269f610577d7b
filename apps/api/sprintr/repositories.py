from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sprintr.models import Member, Notification, Project, Task, TaskComment, TaskHistory, Workspace, utcnow


class _Repository:
  def __init__(self, db: AsyncSession) -> None:
    self.db = db


class WorkspaceRepository(_Repository):
  async def get(self, workspace_id: str) -> Workspace | None:
    res = await self.db.execute(select(Workspace).where(Workspace.id == workspace_id))
    return res.scalar_one_or_none()

  async def list_for_user(self, user_id: str) -> list[Workspace]:
    res = await self.db.execute(
      select(Workspace)
      .join(Member, Member.workspace_id == Workspace.id)
      .where(Member.user_id == user_id)
      .order_by(Workspace.created_at.desc())
    )
    return list(res.scalars().all())

  async def create(self, *, name: str, user_id: str, invite_code: str, image_id: str | None = None) -> Workspace:
    ws = Workspace(name=name, user_id=user_id, invite_code=invite_code, image_id=image_id)
    self.db.add(ws)
    await self.db.flush()
    return ws

  async def delete_everything(self, workspace_id: str) -> None:
    task_ids = select(Task.id).where(Task.workspace_id == workspace_id)
    await self.db.execute(delete(Notification).where(Notification.workspace_id == workspace_id))
    await self.db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
    await self.db.execute(delete(TaskHistory).where(TaskHistory.task_id.in_(task_ids)))
    await self.db.execute(delete(Task).where(Task.workspace_id == workspace_id))
    await self.db.execute(delete(Project).where(Project.workspace_id == workspace_id))
    await self.db.execute(delete(Member).where(Member.workspace_id == workspace_id))
    await self.db.execute(delete(Workspace).where(Workspace.id == workspace_id))


class MemberRepository(_Repository):
  async def get(self, member_id: str) -> Member | None:
    res = await self.db.execute(select(Member).where(Member.id == member_id))
    return res.scalar_one_or_none()

  async def get_for_user(self, workspace_id: str, user_id: str) -> Member | None:
    res = await self.db.execute(select(Member).where(Member.workspace_id == workspace_id, Member.user_id == user_id))
    return res.scalar_one_or_none()

  async def get_many(self, member_ids: list[str]) -> dict[str, Member]:
    ids = [m for m in set(member_ids) if m]
    if not ids:
      return {}
    res = await self.db.execute(select(Member).where(Member.id.in_(ids)))
    return {m.id: m for m in res.scalars().all()}

  async def list_for_workspace(self, workspace_id: str) -> list[Member]:
    res = await self.db.execute(select(Member).where(Member.workspace_id == workspace_id).order_by(Member.created_at.asc()))
    return list(res.scalars().all())

  async def count(self, workspace_id: str) -> int:
    res = await self.db.execute(select(func.count()).select_from(Member).where(Member.workspace_id == workspace_id))
    return int(res.scalar_one())

  async def create(self, *, workspace_id: str, user_id: str, role: str) -> Member:
    m = Member(workspace_id=workspace_id, user_id=user_id, role=role)
    self.db.add(m)
    await self.db.flush()
    return m

  async def delete(self, member: Member) -> None:
    await self.db.execute(delete(Member).where(Member.id == member.id))


class ProjectRepository(_Repository):
  async def get(self, project_id: str) -> Project | None:
    res = await self.db.execute(select(Project).where(Project.id == project_id))
    return res.scalar_one_or_none()

  async def get_many(self, project_ids: list[str]) -> dict[str, Project]:
    ids = [p for p in set(project_ids) if p]
    if not ids:
      return {}
    res = await self.db.execute(select(Project).where(Project.id.in_(ids)))
    return {p.id: p for p in res.scalars().all()}

  async def list_for_workspace(self, workspace_id: str) -> list[Project]:
    res = await self.db.execute(select(Project).where(Project.workspace_id == workspace_id).order_by(Project.created_at.desc()))
    return list(res.scalars().all())

  async def create(self, *, workspace_id: str, name: str, image_id: str | None = None) -> Project:
    p = Project(workspace_id=workspace_id, name=name, image_id=image_id)
    self.db.add(p)
    await self.db.flush()
    return p

  async def delete_with_tasks(self, project_id: str) -> None:
    task_ids = select(Task.id).where(Task.project_id == project_id)
    await self.db.execute(update(Notification).where(Notification.task_id.in_(task_ids)).values(task_id=None))
    await self.db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
    await self.db.execute(delete(TaskHistory).where(TaskHistory.task_id.in_(task_ids)))
    await self.db.execute(delete(Task).where(Task.project_id == project_id))
    await self.db.execute(delete(Project).where(Project.id == project_id))


class TaskRepository(_Repository):
  async def get(self, task_id: str) -> Task | None:
    res = await self.db.execute(select(Task).where(Task.id == task_id))
    return res.scalar_one_or_none()

  async def get_many(self, task_ids: list[str]) -> list[Task]:
    if not task_ids:
      return []
    res = await self.db.execute(select(Task).where(Task.id.in_(task_ids)))
    return list(res.scalars().all())

  async def list_for_workspace(
    self,
    *,
    workspace_id: str,
    project_id: str | None = None,
    assignee_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
  ) -> list[Task]:
    q = select(Task).where(Task.workspace_id == workspace_id)
    if project_id:
      q = q.where(Task.project_id == project_id)
    if assignee_id:
      q = q.where(Task.assignee_id == assignee_id)
    if status:
      q = q.where(Task.status == status)
    if search:
      like = f"%{search}%"
      q = q.where(or_(Task.summary.ilike(like), Task.name.ilike(like)))
    res = await self.db.execute(q.order_by(Task.created_at.desc()))
    return list(res.scalars().all())

  async def name_taken(self, *, project_id: str, name: str, exclude_id: str | None = None) -> bool:
    q = select(Task.id).where(Task.project_id == project_id, Task.name == name)
    if exclude_id:
      q = q.where(Task.id != exclude_id)
    res = await self.db.execute(q.limit(1))
    return res.first() is not None

  async def max_position(self, *, workspace_id: str, status: str) -> int | None:
    res = await self.db.execute(select(func.max(Task.position)).where(Task.workspace_id == workspace_id, Task.status == status))
    return res.scalar_one_or_none()

  async def create(self, **fields: Any) -> Task:
    t = Task(**fields)
    self.db.add(t)
    await self.db.flush()
    return t

  async def delete(self, task: Task) -> None:
    await self.db.execute(update(Notification).where(Notification.task_id == task.id).values(task_id=None))
    await self.db.execute(delete(TaskComment).where(TaskComment.task_id == task.id))
    await self.db.execute(delete(TaskHistory).where(TaskHistory.task_id == task.id))
    await self.db.execute(delete(Task).where(Task.id == task.id))

  async def count(
    self,
    *,
    workspace_id: str,
    start: datetime,
    end: datetime,
    project_id: str | None = None,
    assignee_id: str | None = None,
    status: str | None = None,
    exclude_status: str | None = None,
  ) -> int:
    q = select(func.count()).select_from(Task).where(
      Task.workspace_id == workspace_id,
      Task.created_at >= start,
      Task.created_at < end,
    )
    if project_id:
      q = q.where(Task.project_id == project_id)
    if assignee_id:
      q = q.where(Task.assignee_id == assignee_id)
    if status:
      q = q.where(Task.status == status)
    if exclude_status:
      q = q.where(Task.status != exclude_status)
    res = await self.db.execute(q)
    return int(res.scalar_one())


class CommentRepository(_Repository):
  async def list_for_task(self, task_id: str) -> list[TaskComment]:
    res = await self.db.execute(select(TaskComment).where(TaskComment.task_id == task_id).order_by(TaskComment.created_at.asc()))
    return list(res.scalars().all())

  async def create(self, *, task_id: str, member_id: str, body: str, attachments: list[str]) -> TaskComment:
    c = TaskComment(task_id=task_id, member_id=member_id, body=body, attachments=list(attachments))
    self.db.add(c)
    await self.db.flush()
    return c


class HistoryRepository(_Repository):
  async def list_for_task(self, task_id: str) -> list[TaskHistory]:
    res = await self.db.execute(select(TaskHistory).where(TaskHistory.task_id == task_id).order_by(TaskHistory.created_at.desc()))
    return list(res.scalars().all())


class NotificationRepository(_Repository):
  async def get(self, notification_id: str) -> Notification | None:
    res = await self.db.execute(select(Notification).where(Notification.id == notification_id))
    return res.scalar_one_or_none()

  async def create(
    self,
    *,
    user_id: str,
    workspace_id: str,
    actor_id: str | None,
    task_id: str | None,
    type: str,
    title: str,
    body: str,
    link: str | None = None,
    metadata: dict[str, Any] | None = None,
  ) -> Notification:
    n = Notification(
      user_id=user_id,
      workspace_id=workspace_id,
      actor_id=actor_id,
      task_id=task_id,
      type=type,
      title=title,
      body=body,
      link=link,
      metadata_=dict(metadata or {}),
    )
    self.db.add(n)
    await self.db.flush()
    return n

  def _scope(self, q: Any, *, user_id: str, workspace_id: str | None) -> Any:
    q = q.where(Notification.user_id == user_id)
    if workspace_id:
      q = q.where(Notification.workspace_id == workspace_id)
    return q

  async def list_for_user(self, *, user_id: str, workspace_id: str | None, limit: int) -> list[Notification]:
    q = self._scope(select(Notification), user_id=user_id, workspace_id=workspace_id)
    res = await self.db.execute(q.order_by(Notification.created_at.desc()).limit(limit))
    return list(res.scalars().all())

  async def unread_count(self, *, user_id: str, workspace_id: str | None) -> int:
    q = self._scope(select(func.count()).select_from(Notification), user_id=user_id, workspace_id=workspace_id)
    res = await self.db.execute(q.where(Notification.read_at.is_(None)))
    return int(res.scalar_one())

  async def mark_all_read(self, *, user_id: str, workspace_id: str | None) -> list[Notification]:
    q = self._scope(select(Notification), user_id=user_id, workspace_id=workspace_id)
    res = await self.db.execute(q.where(Notification.read_at.is_(None)).order_by(Notification.created_at.desc()))
    rows = list(res.scalars().all())
    now = utcnow()
    for n in rows:
      n.read_at = now
      n.updated_at = now
    await self.db.flush()
    return rows

  async def mark_read(self, *, notification_id: str, user_id: str) -> Notification | None:
    n = await self.get(notification_id)
    if n is None or n.user_id != user_id:
      return None
    if n.read_at is None:
      n.read_at = utcnow()
      n.updated_at = n.read_at
      await self.db.flush()
    return n
