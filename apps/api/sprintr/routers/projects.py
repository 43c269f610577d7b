from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError

from sprintr.analytics import task_analytics
from sprintr.context import RequestContext
from sprintr.deps import get_context
from sprintr.documents import project_out
from sprintr.errors import BusinessRuleViolation, NotFound, StorageError
from sprintr.models import Project, utcnow
from sprintr.schemas import AnalyticsOut, DataOut, DeletedOut, DocumentListOut, ProjectOut
from sprintr.storage import remove_images, resolve_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


async def _get_project_or_404(ctx: RequestContext, project_id: str) -> Project:
  p = await ctx.projects.get(project_id)
  if not p:
    raise NotFound("Project not found.")
  return p


@router.post("", response_model=DataOut[ProjectOut])
async def create_project(
  name: str = Form(min_length=1, max_length=256),
  workspaceId: str = Form(min_length=1),
  image: UploadFile | None = File(None),
  imageUrl: str | None = Form(None),
  ctx: RequestContext = Depends(get_context),
) -> dict:
  await ctx.require_member(workspaceId)
  name = name.strip()
  if not name:
    raise BusinessRuleViolation("Project name is required.")
  try:
    image_id = await resolve_image(ctx.storage, upload=image, url=imageUrl, prefix="projects")
  except StorageError:
    logger.warning("project image upload failed workspace=%s", workspaceId, exc_info=True)
    raise BusinessRuleViolation("Failed to create project.")

  try:
    p = await ctx.projects.create(workspace_id=workspaceId, name=name, image_id=image_id)
    await ctx.db.commit()
  except SQLAlchemyError:
    await ctx.db.rollback()
    logger.exception("project insert failed workspace=%s", workspaceId)
    raise BusinessRuleViolation("Failed to create project.")
  return {"data": project_out(p, ctx.storage)}


@router.get("", response_model=DataOut[DocumentListOut[ProjectOut]])
async def list_projects(workspaceId: str = Query(min_length=1), ctx: RequestContext = Depends(get_context)) -> dict:
  await ctx.require_member(workspaceId)
  items = await ctx.projects.list_for_workspace(workspaceId)
  return {"data": {"documents": [project_out(p, ctx.storage) for p in items], "total": len(items)}}


@router.get("/{project_id}", response_model=DataOut[ProjectOut])
async def get_project(project_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  p = await _get_project_or_404(ctx, project_id)
  await ctx.require_member(p.workspace_id)
  return {"data": project_out(p, ctx.storage)}


@router.patch("/{project_id}", response_model=DataOut[ProjectOut])
async def update_project(
  project_id: str,
  name: str | None = Form(None, max_length=256),
  image: UploadFile | None = File(None),
  imageUrl: str | None = Form(None),
  ctx: RequestContext = Depends(get_context),
) -> dict:
  p = await _get_project_or_404(ctx, project_id)
  await ctx.require_member(p.workspace_id)

  new_image = await resolve_image(ctx.storage, upload=image, url=imageUrl, prefix="projects")
  old_image = p.image_id
  if name and name.strip():
    p.name = name.strip()
  if new_image is not None:
    p.image_id = new_image
  p.updated_at = utcnow()
  await ctx.db.commit()

  if new_image is not None and old_image and old_image != new_image:
    await remove_images(ctx.storage, [old_image])
  return {"data": project_out(p, ctx.storage)}


@router.delete("/{project_id}", response_model=DataOut[DeletedOut])
async def delete_project(project_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  p = await _get_project_or_404(ctx, project_id)
  await ctx.require_member(p.workspace_id)

  workspace_id, image_id = p.workspace_id, p.image_id
  await ctx.projects.delete_with_tasks(project_id)
  await ctx.db.commit()
  await remove_images(ctx.storage, [image_id])
  logger.info("project deleted id=%s workspace=%s by=%s", project_id, workspace_id, ctx.user.id)
  return {"data": DeletedOut(id=project_id, workspaceId=workspace_id)}


@router.get("/{project_id}/analytics", response_model=DataOut[AnalyticsOut])
async def project_analytics(project_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  p = await _get_project_or_404(ctx, project_id)
  member = await ctx.require_member(p.workspace_id)
  return {"data": await task_analytics(ctx, workspace_id=p.workspace_id, member_id=member.id, project_id=p.id)}
