from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.exc import SQLAlchemyError

from sprintr.analytics import task_analytics
from sprintr.config import settings
from sprintr.context import RequestContext
from sprintr.deps import get_context
from sprintr.documents import workspace_out
from sprintr.errors import AuthorizationFailure, BusinessRuleViolation, NotFound, StorageError
from sprintr.models import Workspace, utcnow
from sprintr.schemas import AnalyticsOut, DataOut, DeletedOut, DocumentListOut, WorkspaceInfoOut, WorkspaceJoinIn, WorkspaceOut
from sprintr.security import generate_invite_code
from sprintr.storage import image_url, remove_images, resolve_image
from sprintr.task_fields import MemberRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


async def _get_workspace_or_404(ctx: RequestContext, workspace_id: str) -> Workspace:
  ws = await ctx.workspaces.get(workspace_id)
  if not ws:
    raise NotFound("Workspace not found.")
  return ws


@router.get("", response_model=DataOut[DocumentListOut[WorkspaceOut]])
async def list_workspaces(ctx: RequestContext = Depends(get_context)) -> dict:
  items = await ctx.workspaces.list_for_user(ctx.user.id)
  return {"data": {"documents": [workspace_out(ws, ctx.storage) for ws in items], "total": len(items)}}


@router.post("", response_model=DataOut[WorkspaceOut])
async def create_workspace(
  name: str = Form(min_length=1, max_length=256),
  image: UploadFile | None = File(None),
  imageUrl: str | None = Form(None),
  ctx: RequestContext = Depends(get_context),
) -> dict:
  name = name.strip()
  if not name:
    raise BusinessRuleViolation("Workspace name is required.")
  try:
    image_id = await resolve_image(ctx.storage, upload=image, url=imageUrl, prefix="workspaces")
  except StorageError:
    logger.warning("workspace image upload failed user=%s", ctx.user.id, exc_info=True)
    raise BusinessRuleViolation("Failed to create workspace.")

  try:
    ws = await ctx.workspaces.create(name=name, user_id=ctx.user.id, invite_code=generate_invite_code(6), image_id=image_id)
    await ctx.members.create(workspace_id=ws.id, user_id=ctx.user.id, role=MemberRole.ADMIN.value)
    await ctx.db.commit()
  except SQLAlchemyError:
    await ctx.db.rollback()
    logger.exception("workspace insert failed user=%s", ctx.user.id)
    raise BusinessRuleViolation("Failed to create workspace.")
  logger.info("workspace created id=%s user=%s", ws.id, ctx.user.id)
  return {"data": workspace_out(ws, ctx.storage)}


@router.get("/{workspace_id}", response_model=DataOut[WorkspaceOut])
async def get_workspace(workspace_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  await ctx.require_member(workspace_id)
  ws = await _get_workspace_or_404(ctx, workspace_id)
  return {"data": workspace_out(ws, ctx.storage)}


@router.get("/{workspace_id}/info", response_model=DataOut[WorkspaceInfoOut])
async def get_workspace_info(workspace_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  ws = await _get_workspace_or_404(ctx, workspace_id)
  return {"data": WorkspaceInfoOut(id=ws.id, name=ws.name, imageUrl=image_url(ctx.storage, settings.images_bucket, ws.image_id))}


@router.patch("/{workspace_id}", response_model=DataOut[WorkspaceOut])
async def update_workspace(
  workspace_id: str,
  name: str | None = Form(None, max_length=256),
  image: UploadFile | None = File(None),
  imageUrl: str | None = Form(None),
  ctx: RequestContext = Depends(get_context),
) -> dict:
  ws = await _get_workspace_or_404(ctx, workspace_id)
  await ctx.require_admin(workspace_id)

  new_image = await resolve_image(ctx.storage, upload=image, url=imageUrl, prefix="workspaces")
  old_image = ws.image_id
  if name and name.strip():
    ws.name = name.strip()
  if new_image is not None:
    ws.image_id = new_image
  ws.updated_at = utcnow()
  await ctx.db.commit()

  if new_image is not None and old_image and old_image != new_image:
    await remove_images(ctx.storage, [old_image])
  return {"data": workspace_out(ws, ctx.storage)}


@router.delete("/{workspace_id}", response_model=DataOut[DeletedOut], response_model_exclude_none=True)
async def delete_workspace(workspace_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  member = await ctx.get_member(workspace_id)
  ws = await _get_workspace_or_404(ctx, workspace_id)
  if member is None or ws.user_id != ctx.user.id:
    raise AuthorizationFailure()

  images = [p.image_id for p in await ctx.projects.list_for_workspace(workspace_id)] + [ws.image_id]
  await ctx.workspaces.delete_everything(workspace_id)
  await ctx.db.commit()
  await remove_images(ctx.storage, images)
  logger.info("workspace deleted id=%s user=%s", workspace_id, ctx.user.id)
  return {"data": DeletedOut(id=workspace_id)}


@router.post("/{workspace_id}/reset-invite-code", response_model=DataOut[WorkspaceOut])
async def reset_invite_code(workspace_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  await ctx.require_admin(workspace_id)
  ws = await _get_workspace_or_404(ctx, workspace_id)
  ws.invite_code = generate_invite_code(6)
  ws.updated_at = utcnow()
  await ctx.db.commit()
  return {"data": workspace_out(ws, ctx.storage)}


@router.post("/{workspace_id}/join", response_model=DataOut[WorkspaceOut])
async def join_workspace(workspace_id: str, payload: WorkspaceJoinIn, ctx: RequestContext = Depends(get_context)) -> dict:
  if await ctx.get_member(workspace_id):
    raise BusinessRuleViolation("Already a member.")
  ws = await _get_workspace_or_404(ctx, workspace_id)
  if ws.invite_code != payload.code:
    raise BusinessRuleViolation("Invalid invite code.")
  await ctx.members.create(workspace_id=workspace_id, user_id=ctx.user.id, role=MemberRole.MEMBER.value)
  await ctx.db.commit()
  logger.info("workspace joined id=%s user=%s", workspace_id, ctx.user.id)
  return {"data": workspace_out(ws, ctx.storage)}


@router.get("/{workspace_id}/analytics", response_model=DataOut[AnalyticsOut])
async def workspace_analytics(workspace_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  member = await ctx.require_member(workspace_id)
  return {"data": await task_analytics(ctx, workspace_id=workspace_id, member_id=member.id)}
