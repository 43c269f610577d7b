from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sprintr.context import RequestContext
from sprintr.deps import get_context
from sprintr.documents import notification_out
from sprintr.errors import NotFound
from sprintr.schemas import DataOut, NotificationListOut, NotificationOut, NotificationsReadIn

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=DataOut[NotificationListOut])
async def list_notifications(
  workspaceId: str | None = None,
  limit: int = Query(20, ge=1, le=50),
  ctx: RequestContext = Depends(get_context),
) -> dict:
  rows = await ctx.notifications.list_for_user(user_id=ctx.user.id, workspace_id=workspaceId, limit=limit)
  unread = await ctx.notifications.unread_count(user_id=ctx.user.id, workspace_id=workspaceId)
  return {"data": {"documents": [notification_out(n) for n in rows], "unreadCount": unread}}


@router.patch("/read", response_model=DataOut[list[NotificationOut]])
async def mark_all_notifications_read(
  payload: NotificationsReadIn | None = None,
  ctx: RequestContext = Depends(get_context),
) -> dict:
  workspace_id = payload.workspaceId if payload else None
  rows = await ctx.notifications.mark_all_read(user_id=ctx.user.id, workspace_id=workspace_id)
  await ctx.db.commit()
  return {"data": [notification_out(n) for n in rows]}


@router.patch("/{notification_id}/read", response_model=DataOut[NotificationOut])
async def mark_notification_read(notification_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
  n = await ctx.notifications.mark_read(notification_id=notification_id, user_id=ctx.user.id)
  if n is None:
    raise NotFound("Notification not found.")
  await ctx.db.commit()
  return {"data": notification_out(n)}
