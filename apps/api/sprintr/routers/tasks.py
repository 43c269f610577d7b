from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sprintr.context import RequestContext
from sprintr.deps import get_context
from sprintr.documents import comment_out, history_out, member_docs, populated_tasks, task_out
from sprintr.errors import AuthorizationFailure, BusinessRuleViolation, Conflict, NotFound
from sprintr.history import apply_task_update, write_history
from sprintr.models import Task, utcnow
from sprintr.notifications.dispatch import run_best_effort
from sprintr.notifications.events import TaskSnapshot, notify_comment_added, notify_task_assigned, notify_task_created
from sprintr.schemas import (
  BulkUpdateIn,
  BulkUpdateOut,
  CommentCreateIn,
  CommentOut,
  DataOut,
  DocumentListOut,
  HistoryOut,
  TaskCreateIn,
  TaskOut,
  TaskUpdateIn,
)
from sprintr.task_codes import build_project_code, next_task_code
from sprintr.task_fields import POSITION_MAX, POSITION_STEP, TaskStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

# PATCH may send null only for these; the rest are required columns.
_NULLABLE_UPDATE_FIELDS = {"description", "priority", "workType", "attachments"}


async def _get_task_or_404(ctx: RequestContext, task_id: str) -> Task:
  t = await ctx.tasks.get(task_id)
  if not t:
    raise NotFound("Task not found.")
  return t


async def _validate_project(ctx: RequestContext, workspace_id: str, project_id: str) -> None:
  p = await ctx.projects.get(project_id)
  if not p or p.workspace_id != workspace_id:
    raise NotFound("Project not found.")


async def _validate_assignee(ctx: RequestContext, workspace_id: str, assignee_id: str) -> None:
  m = await ctx.members.get(assignee_id)
  if not m or m.workspace_id != workspace_id:
    raise BusinessRuleViolation("Assignee must be a member of this workspace.")


async def _next_position(ctx: RequestContext, *, workspace_id: str, status: str) -> int:
  highest = await ctx.tasks.max_position(workspace_id=workspace_id, status=status)
  if highest is None:
    return POSITION_STEP
  return min(int(highest) + POSITION_STEP, POSITION_MAX)


@router.get("", response_model=DataOut[DocumentListOut[TaskOut]])
async def list_tasks(
  workspaceId: str = Query(min_length=1),
  projectId: str | None = None,
  assigneeId: str | None = None,
  status: TaskStatus | None = None,
  search: str | None = None,
  ctx: RequestContext = Depends(get_context),
) -> dict:
  await ctx.require_member(workspaceId)
  tasks = await ctx.tasks.list_for_workspace(
    workspace_id=workspaceId,
    project_id=projectId,
    assignee_id=assigneeId,
    status=status.value if status else None,
    search=(search or "").strip() or None,
  )
  docs = await populated_tasks(ctx, tasks)
  return {"data": {"documents": docs, "total": len(docs)}}


@router.post("", response_model=DataOut[TaskOut])
async def create_task(payload: TaskCreateIn, ctx: RequestContext = Depends(get_context)) -> dict:
  member = await ctx.require_member(payload.workspaceId)
  project = await ctx.projects.get(payload.projectId)
  if not project or project.workspace_id != payload.workspaceId:
    raise NotFound("Project not found.")
  await _validate_assignee(ctx, payload.workspaceId, payload.assigneeId)

  project_id = project.id
  prefix = build_project_code(project.name or "Task")
  name = await next_task_code(ctx.db, project_id=project_id, prefix=prefix)
  position = await _next_position(ctx, workspace_id=payload.workspaceId, status=payload.status.value)
  try:
    t = await ctx.tasks.create(
      workspace_id=payload.workspaceId,
      project_id=project_id,
      reporter_id=member.id,
      assignee_id=payload.assigneeId,
      name=name,
      summary=payload.summary,
      description=payload.description,
      status=payload.status.value,
      work_type=payload.workType.value,
      priority=payload.priority.value,
      position=position,
      attachments=list(payload.attachments or []),
    )
    write_history(ctx.db, task_id=t.id, member_id=member.id, field="created", to_value=t.name)
    await ctx.db.commit()
  except IntegrityError:
    await ctx.db.rollback()
    logger.warning("task code collision project=%s code=%s", project_id, name)
    raise Conflict("Task code already taken, please retry.")

  out = task_out(t)
  snap = TaskSnapshot.of(t)
  await run_best_effort("task created notifications", lambda: notify_task_created(ctx, task=snap, actor_member_id=member.id))
  return {"data": out}


@router.post("/bulk-update", response_model=DataOut[BulkUpdateOut])
async def bulk_update_tasks(payload: BulkUpdateIn, ctx: RequestContext = Depends(get_context)) -> dict:
  ids = [item.id for item in payload.tasks]
  tasks = {t.id: t for t in await ctx.tasks.get_many(ids)}
  workspace_ids = {t.workspace_id for t in tasks.values()}
  if len(workspace_ids) != 1:
    raise AuthorizationFailure("All tasks must belong to the same workspace.")
  workspace_id = next(iter(workspace_ids))
  member = await ctx.require_member(workspace_id)

  for item in payload.tasks:
    t = tasks.get(item.id)
    if t and t.status != item.status.value:
      write_history(ctx.db, task_id=t.id, member_id=member.id, field="status", from_value=t.status, to_value=item.status.value)

  now = utcnow()
  updated: list[Task] = []
  for item in payload.tasks:
    t = tasks.get(item.id)
    if not t:
      continue
    t.status = item.status.value
    t.position = item.position
    t.updated_at = now
    updated.append(t)
  await ctx.db.commit()
  return {"data": {"updatedTasks": [task_out(t) for t in updated], "workspaceId": workspace_id}}


@router.get("/{task_id}", response_model=DataOut[TaskOut])
async def get_task(task_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  await ctx.require_member(t.workspace_id)
  docs = await populated_tasks(ctx, [t])
  return {"data": docs[0]}


@router.patch("/{task_id}", response_model=DataOut[TaskOut])
async def update_task(task_id: str, payload: TaskUpdateIn, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  member = await ctx.require_member(t.workspace_id)

  changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k in _NULLABLE_UPDATE_FIELDS}
  if changes.get("projectId"):
    await _validate_project(ctx, t.workspace_id, changes["projectId"])
    if changes["projectId"] != t.project_id and await ctx.tasks.name_taken(project_id=changes["projectId"], name=t.name, exclude_id=t.id):
      raise Conflict("Task code already exists in the target project.")
  if changes.get("assigneeId"):
    await _validate_assignee(ctx, t.workspace_id, changes["assigneeId"])

  previous_assignee = t.assignee_id
  await apply_task_update(ctx.db, task=t, changes=changes, member_id=member.id)
  await ctx.db.commit()

  out = task_out(t)
  if "assigneeId" in changes and t.assignee_id != previous_assignee:
    snap = TaskSnapshot.of(t)
    await run_best_effort("task assigned notifications", lambda: notify_task_assigned(ctx, task=snap, actor_member_id=member.id))
  return {"data": out}


@router.delete("/{task_id}", response_model=DataOut[TaskOut])
async def delete_task(task_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  await ctx.require_member(t.workspace_id)
  out = task_out(t)
  await ctx.tasks.delete(t)
  await ctx.db.commit()
  return {"data": out}


@router.get("/{task_id}/comments", response_model=DataOut[DocumentListOut[CommentOut]])
async def list_comments(task_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  await ctx.require_member(t.workspace_id)
  comments = await ctx.comments.list_for_task(t.id)
  authors = await member_docs(ctx, [c.member_id for c in comments])
  docs = [comment_out(c, authors.get(c.member_id)) for c in comments]
  return {"data": {"documents": docs, "total": len(docs)}}


@router.post("/{task_id}/comments", response_model=DataOut[CommentOut])
async def create_comment(task_id: str, payload: CommentCreateIn, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  member = await ctx.require_member(t.workspace_id)
  try:
    c = await ctx.comments.create(task_id=t.id, member_id=member.id, body=payload.body, attachments=list(payload.attachments or []))
    await ctx.db.commit()
  except SQLAlchemyError:
    await ctx.db.rollback()
    logger.exception("comment insert failed task=%s", task_id)
    raise BusinessRuleViolation("Failed to create comment.")

  out = comment_out(c)
  snap = TaskSnapshot.of(t)
  await run_best_effort(
    "comment notifications",
    lambda: notify_comment_added(ctx, task=snap, actor_member_id=member.id, comment_body=payload.body),
  )
  return {"data": out}


@router.get("/{task_id}/history", response_model=DataOut[DocumentListOut[HistoryOut]])
async def list_history(task_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  t = await _get_task_or_404(ctx, task_id)
  await ctx.require_member(t.workspace_id)
  rows = await ctx.history.list_for_task(t.id)
  actors = await member_docs(ctx, [h.member_id for h in rows])
  docs = [history_out(h, actors.get(h.member_id)) for h in rows]
  return {"data": {"documents": docs, "total": len(docs)}}
