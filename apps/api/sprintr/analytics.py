from __future__ import annotations

from datetime import datetime, timezone

from sprintr.context import RequestContext
from sprintr.schemas import AnalyticsOut
from sprintr.task_fields import TaskStatus


def month_bounds(now: datetime | None = None) -> tuple[datetime, datetime, datetime]:
  """(start of last month, start of this month, start of next month), UTC."""
  now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
  this_start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
  if now.month == 12:
    next_start = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
  else:
    next_start = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
  if now.month == 1:
    last_start = datetime(now.year - 1, 12, 1, tzinfo=timezone.utc)
  else:
    last_start = datetime(now.year, now.month - 1, 1, tzinfo=timezone.utc)
  return last_start, this_start, next_start


async def task_analytics(
  ctx: RequestContext,
  *,
  workspace_id: str,
  member_id: str,
  project_id: str | None = None,
  now: datetime | None = None,
) -> AnalyticsOut:
  last_start, this_start, next_start = month_bounds(now)

  async def pair(**filters: str) -> tuple[int, int]:
    this_month = await ctx.tasks.count(workspace_id=workspace_id, project_id=project_id, start=this_start, end=next_start, **filters)
    last_month = await ctx.tasks.count(workspace_id=workspace_id, project_id=project_id, start=last_start, end=this_start, **filters)
    return this_month, this_month - last_month

  task_count, task_diff = await pair()
  assigned_count, assigned_diff = await pair(assignee_id=member_id)
  incomplete_count, incomplete_diff = await pair(exclude_status=TaskStatus.DONE.value)
  completed_count, completed_diff = await pair(status=TaskStatus.DONE.value)
  # Tasks carry no due date, so nothing can be overdue.
  return AnalyticsOut(
    taskCount=task_count,
    taskDifference=task_diff,
    assignedTaskCount=assigned_count,
    assignedTaskDifference=assigned_diff,
    completedTaskCount=completed_count,
    completedTaskDifference=completed_diff,
    incompleteTaskCount=incomplete_count,
    incompleteTaskDifference=incomplete_diff,
    overdueTaskCount=0,
    overdueTaskDifference=0,
  )
