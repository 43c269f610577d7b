from __future__ import annotations

import logging
from dataclasses import dataclass

from sprintr.context import MemberIdentity, RequestContext
from sprintr.mentions import extract_mention_emails
from sprintr.models import Notification, Task
from sprintr.notifications.dispatch import DispatchResult, run_best_effort
from sprintr.notifications.email import build_notification_email_html
from sprintr.notifications.service import EmailMessage
from sprintr.task_fields import NotificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskSnapshot:
  """Plain copy of a task so fan-out never touches ORM state after a rollback."""

  id: str
  workspace_id: str
  project_id: str
  name: str
  summary: str
  description: str | None
  status: str
  work_type: str | None
  priority: str | None
  assignee_id: str | None
  reporter_id: str | None

  @classmethod
  def of(cls, task: Task) -> TaskSnapshot:
    return cls(
      id=task.id,
      workspace_id=task.workspace_id,
      project_id=task.project_id,
      name=task.name,
      summary=task.summary,
      description=task.description,
      status=task.status,
      work_type=task.work_type,
      priority=task.priority,
      assignee_id=task.assignee_id,
      reporter_id=task.reporter_id,
    )


@dataclass(frozen=True)
class Recipient:
  user_id: str
  email: str
  mentioned: bool = False


def task_link(workspace_id: str) -> str:
  return f"/workspaces/{workspace_id}/tasks"


async def _insert_notification(
  ctx: RequestContext,
  *,
  task: TaskSnapshot,
  user_id: str,
  actor_member_id: str,
  type: NotificationType,
  title: str,
  body: str,
) -> Notification:
  try:
    n = await ctx.notifications.create(
      user_id=user_id,
      workspace_id=task.workspace_id,
      actor_id=actor_member_id,
      task_id=task.id,
      type=type.value,
      title=title,
      body=body,
      link=task_link(task.workspace_id),
      metadata={"taskId": task.id, "projectId": task.project_id},
    )
    await ctx.db.commit()
    return n
  except Exception:
    await ctx.db.rollback()
    raise


async def deliver(
  ctx: RequestContext,
  *,
  task: TaskSnapshot,
  recipient: Recipient,
  actor_member_id: str,
  type: NotificationType,
  title: str,
  body: str,
  assignee: MemberIdentity | None,
  reporter: MemberIdentity | None,
) -> list[DispatchResult]:
  """One in-app row plus one email for a recipient; both best-effort."""
  results = [
    await run_best_effort(
      "notification insert",
      lambda: _insert_notification(
        ctx, task=task, user_id=recipient.user_id, actor_member_id=actor_member_id, type=type, title=title, body=body
      ),
    )
  ]
  if not recipient.email:
    return results

  html = build_notification_email_html(
    title=title,
    body=body,
    task_name=task.name,
    task_summary=task.summary,
    status=task.status,
    work_type=task.work_type,
    priority=task.priority,
    assignee=assignee.name if assignee else None,
    reporter=reporter.name if reporter else None,
    description=task.description,
    link=task_link(task.workspace_id),
  )
  msg = EmailMessage(to=recipient.email, subject=title, html=html)
  results.append(await run_best_effort("notification email", lambda: ctx.mailer.send(msg)))
  return results


async def notify_task_created(ctx: RequestContext, *, task: TaskSnapshot, actor_member_id: str) -> int:
  assignee = await ctx.member_identity(task.assignee_id)
  if assignee is None or assignee.user_id == ctx.user.id:
    return 0
  reporter = await ctx.member_identity(task.reporter_id)
  await deliver(
    ctx,
    task=task,
    recipient=Recipient(user_id=assignee.user_id, email=assignee.email),
    actor_member_id=actor_member_id,
    type=NotificationType.TASK_CREATED,
    title=f"{ctx.user.name} created {task.name}",
    body=task.summary or "",
    assignee=assignee,
    reporter=reporter,
  )
  return 1


async def notify_task_assigned(ctx: RequestContext, *, task: TaskSnapshot, actor_member_id: str) -> int:
  assignee = await ctx.member_identity(task.assignee_id)
  if assignee is None or assignee.user_id == ctx.user.id:
    return 0
  reporter = await ctx.member_identity(task.reporter_id)
  await deliver(
    ctx,
    task=task,
    recipient=Recipient(user_id=assignee.user_id, email=assignee.email),
    actor_member_id=actor_member_id,
    type=NotificationType.TASK_ASSIGNED,
    title=f"{ctx.user.name} assigned you {task.name}",
    body=task.summary or "",
    assignee=assignee,
    reporter=reporter,
  )
  return 1


async def comment_recipients(
  ctx: RequestContext,
  *,
  task: TaskSnapshot,
  comment_body: str,
  assignee: MemberIdentity | None,
  reporter: MemberIdentity | None,
) -> list[Recipient]:
  """Assignee and reporter plus mentioned workspace members, keyed by user, never the actor."""
  recipients: dict[str, Recipient] = {}
  for ident in (assignee, reporter):
    if ident and ident.user_id != ctx.user.id:
      recipients[ident.user_id] = Recipient(user_id=ident.user_id, email=ident.email)

  mentioned = extract_mention_emails(comment_body)
  if mentioned:
    for m in await ctx.members.list_for_workspace(task.workspace_id):
      ident = await ctx.identity_for(m)
      email = (ident.email if ident else "").lower()
      if not email or email not in mentioned or m.user_id == ctx.user.id:
        continue
      recipients[m.user_id] = Recipient(user_id=m.user_id, email=email, mentioned=True)
  return list(recipients.values())


async def notify_comment_added(ctx: RequestContext, *, task: TaskSnapshot, actor_member_id: str, comment_body: str) -> int:
  assignee = await ctx.member_identity(task.assignee_id)
  reporter = await ctx.member_identity(task.reporter_id)
  recipients = await comment_recipients(ctx, task=task, comment_body=comment_body, assignee=assignee, reporter=reporter)
  task_name = task.name or "Task"
  body = task.summary or "New comment added."
  for r in recipients:
    if r.mentioned:
      kind, title = NotificationType.MENTIONED, f"{ctx.user.name} mentioned you in {task_name}"
    else:
      kind, title = NotificationType.COMMENT_ADDED, f"{ctx.user.name} commented on {task_name}"
    await deliver(
      ctx,
      task=task,
      recipient=r,
      actor_member_id=actor_member_id,
      type=kind,
      title=title,
      body=body,
      assignee=assignee,
      reporter=reporter,
    )
  logger.debug("comment fan-out task=%s recipients=%d", task.id, len(recipients))
  return len(recipients)
