from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from sprintr.context import RequestContext
from sprintr.deps import get_context
from sprintr.documents import member_out
from sprintr.errors import AuthorizationFailure, BusinessRuleViolation, NotFound
from sprintr.models import Member, Workspace, utcnow
from sprintr.schemas import DataOut, DeletedOut, DocumentListOut, MemberOut, MemberRoleIn
from sprintr.task_fields import MemberRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["members"])


async def _load_target(ctx: RequestContext, member_id: str, *, only_member_error: str) -> tuple[Member, Member, Workspace]:
  """
  Shared guard ladder for member mutations.

  Returns (target, actor, workspace). The checks run in a fixed order so the
  "only member" rule wins over any authorization outcome.
  """
  target = await ctx.members.get(member_id)
  if not target:
    raise NotFound("Member not found.")
  if await ctx.members.count(target.workspace_id) == 1:
    raise BusinessRuleViolation(only_member_error)
  actor = await ctx.require_member(target.workspace_id)
  ws = await ctx.workspaces.get(target.workspace_id)
  if not ws:
    raise NotFound("Workspace not found.")
  return target, actor, ws


@router.get("", response_model=DataOut[DocumentListOut[MemberOut]])
async def list_members(workspaceId: str = Query(min_length=1), ctx: RequestContext = Depends(get_context)) -> dict:
  await ctx.require_member(workspaceId)
  members = await ctx.members.list_for_workspace(workspaceId)
  docs = [member_out(m, await ctx.identity_for(m)) for m in members]
  return {"data": {"documents": docs, "total": len(docs)}}


@router.delete("/{member_id}", response_model=DataOut[DeletedOut])
async def delete_member(member_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  target, actor, ws = await _load_target(ctx, member_id, only_member_error="Cannot delete the only member.")
  is_owner = ws.user_id == ctx.user.id
  is_admin = actor.role == MemberRole.ADMIN.value
  if not is_owner and not is_admin:
    raise AuthorizationFailure()
  if target.user_id == ws.user_id:
    raise BusinessRuleViolation("Cannot remove the workspace owner.")
  # Admins may only remove plain members; the owner may remove anyone else.
  if not is_owner and target.role != MemberRole.MEMBER.value:
    raise AuthorizationFailure()

  workspace_id = target.workspace_id
  await ctx.members.delete(target)
  await ctx.db.commit()
  logger.info("member removed id=%s workspace=%s by=%s", member_id, workspace_id, ctx.user.id)
  return {"data": DeletedOut(id=member_id, workspaceId=workspace_id)}


@router.patch("/{member_id}", response_model=DataOut[DeletedOut])
async def update_member_role(member_id: str, payload: MemberRoleIn, ctx: RequestContext = Depends(get_context)) -> dict:
  target, _, ws = await _load_target(ctx, member_id, only_member_error="Cannot downgrade the only member.")
  if ws.user_id != ctx.user.id:
    raise AuthorizationFailure()
  if target.user_id == ws.user_id:
    raise BusinessRuleViolation("Cannot change the owner role.")

  target.role = payload.role.value
  target.updated_at = utcnow()
  await ctx.db.commit()
  logger.info("member role changed id=%s role=%s by=%s", member_id, target.role, ctx.user.id)
  return {"data": DeletedOut(id=member_id, workspaceId=target.workspace_id)}
