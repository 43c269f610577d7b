from __future__ import annotations

from sprintr.config import settings
from sprintr.context import MemberIdentity, RequestContext
from sprintr.models import Member, Notification, Project, Task, TaskComment, TaskHistory, Workspace
from sprintr.schemas import CommentOut, HistoryOut, MemberOut, NotificationOut, ProjectOut, TaskOut, WorkspaceOut
from sprintr.storage import StorageClient, image_url


def _base(row: Workspace | Member | Project | Task | TaskComment | TaskHistory | Notification) -> dict:
  return {"id": row.id, "createdAt": row.created_at, "updatedAt": row.updated_at}


def workspace_out(ws: Workspace, storage: StorageClient) -> WorkspaceOut:
  return WorkspaceOut(
    **_base(ws),
    name=ws.name,
    userId=ws.user_id,
    imageId=ws.image_id,
    imageUrl=image_url(storage, settings.images_bucket, ws.image_id),
    inviteCode=ws.invite_code,
  )


def project_out(p: Project, storage: StorageClient) -> ProjectOut:
  return ProjectOut(
    **_base(p),
    workspaceId=p.workspace_id,
    name=p.name,
    imageId=p.image_id,
    imageUrl=image_url(storage, settings.images_bucket, p.image_id),
  )


def member_out(m: Member, identity: MemberIdentity | None = None) -> MemberOut:
  return MemberOut(
    **_base(m),
    workspaceId=m.workspace_id,
    userId=m.user_id,
    role=m.role,
    name=identity.name if identity else "",
    email=identity.email if identity else "",
  )


def task_out(
  t: Task,
  *,
  project: ProjectOut | None = None,
  assignee: MemberOut | None = None,
  reporter: MemberOut | None = None,
) -> TaskOut:
  return TaskOut(
    **_base(t),
    workspaceId=t.workspace_id,
    projectId=t.project_id,
    reporterId=t.reporter_id,
    assigneeId=t.assignee_id,
    name=t.name,
    summary=t.summary,
    description=t.description,
    status=t.status,
    workType=t.work_type,
    priority=t.priority,
    position=t.position,
    attachments=list(t.attachments or []),
    project=project,
    assignee=assignee,
    reporter=reporter,
  )


def comment_out(c: TaskComment, author: MemberOut | None = None) -> CommentOut:
  return CommentOut(
    **_base(c),
    taskId=c.task_id,
    memberId=c.member_id,
    body=c.body,
    attachments=list(c.attachments or []),
    author=author,
  )


def history_out(h: TaskHistory, actor: MemberOut | None = None) -> HistoryOut:
  return HistoryOut(
    **_base(h),
    taskId=h.task_id,
    memberId=h.member_id,
    field=h.field,
    fromValue=h.from_value,
    toValue=h.to_value,
    actor=actor,
  )


def notification_out(n: Notification) -> NotificationOut:
  return NotificationOut(
    **_base(n),
    userId=n.user_id,
    workspaceId=n.workspace_id,
    actorId=n.actor_id,
    taskId=n.task_id,
    type=n.type,
    title=n.title,
    body=n.body,
    link=n.link,
    metadata=dict(n.metadata_ or {}),
    readAt=n.read_at,
  )


async def member_docs(ctx: RequestContext, member_ids: list[str | None]) -> dict[str, MemberOut]:
  """Members by id with account name/email filled in."""
  members = await ctx.members.get_many([m for m in member_ids if m])
  out: dict[str, MemberOut] = {}
  for member_id, m in members.items():
    out[member_id] = member_out(m, await ctx.identity_for(m))
  return out


async def populated_tasks(ctx: RequestContext, tasks: list[Task]) -> list[TaskOut]:
  projects = await ctx.projects.get_many([t.project_id for t in tasks])
  members = await member_docs(ctx, [t.assignee_id for t in tasks] + [t.reporter_id for t in tasks])
  out: list[TaskOut] = []
  for t in tasks:
    p = projects.get(t.project_id)
    out.append(
      task_out(
        t,
        project=project_out(p, ctx.storage) if p else None,
        assignee=members.get(t.assignee_id),
        reporter=members.get(t.reporter_id) if t.reporter_id else None,
      )
    )
  return out
