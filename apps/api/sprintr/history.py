from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from sprintr.models import Task, TaskHistory, utcnow

# API field -> Task column, in the order history rows are written.
TASK_UPDATE_COLUMNS: dict[str, str] = {
  "summary": "summary",
  "status": "status",
  "workType": "work_type",
  "priority": "priority",
  "projectId": "project_id",
  "assigneeId": "assignee_id",
  "description": "description",
  "attachments": "attachments",
}
UNTRACKED_FIELDS = frozenset({"attachments"})


@dataclass(frozen=True)
class FieldChange:
  field: str
  from_value: str | None
  to_value: str | None


def _plain(value: Any) -> Any:
  if isinstance(value, Enum):
    return value.value
  return value


def _history_value(value: Any) -> str | None:
  value = _plain(value)
  if value is None:
    return None
  return str(value)


def diff_task_update(task: Task, changes: dict[str, Any]) -> list[FieldChange]:
  """History entries for the fields present in `changes` that differ from `task`."""
  out: list[FieldChange] = []
  for field, column in TASK_UPDATE_COLUMNS.items():
    if field not in changes or field in UNTRACKED_FIELDS:
      continue
    before = getattr(task, column)
    after = _plain(changes[field])
    if before != after:
      out.append(FieldChange(field=field, from_value=_history_value(before), to_value=_history_value(after)))
  return out


def write_history(
  db: AsyncSession,
  *,
  task_id: str,
  member_id: str,
  field: str,
  from_value: str | None = None,
  to_value: str | None = None,
) -> TaskHistory:
  row = TaskHistory(task_id=task_id, member_id=member_id, field=field, from_value=from_value, to_value=to_value)
  db.add(row)
  return row


async def apply_task_update(db: AsyncSession, *, task: Task, changes: dict[str, Any], member_id: str) -> list[FieldChange]:
  """
  Apply a partial update and append its history.

  Only keys present in `changes` are considered; each differing tracked field
  gets one history row. Attachments are stored but never historized. The
  changed columns and `updated_at` go out in a single UPDATE.
  """
  entries = diff_task_update(task, changes)
  for e in entries:
    write_history(db, task_id=task.id, member_id=member_id, field=e.field, from_value=e.from_value, to_value=e.to_value)

  for field, column in TASK_UPDATE_COLUMNS.items():
    if field not in changes:
      continue
    value = _plain(changes[field])
    if field == "attachments":
      value = list(value or [])
    if getattr(task, column) != value:
      setattr(task, column, value)
  task.updated_at = utcnow()
  await db.flush()
  return entries
