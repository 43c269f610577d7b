from __future__ import annotations

import re
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sprintr.models import Task

DEFAULT_PREFIX = "TK"
_VOWELS = frozenset("AEIOU")


def build_project_code(project_name: str | None) -> str:
  """
  Two-letter task prefix for a project name.

  Two or more words give their initials ("Sprint Runner" -> "SR"). A single word
  gives its first letter plus the first consonant after its first vowel
  ("Task" -> "TS"), falling back to any later consonant, then the second
  letter, then "K".
  """
  cleaned = re.sub(r"[^a-zA-Z0-9 ]", "", project_name or "")
  words = [re.sub(r"[^a-zA-Z]", "", w).upper() for w in cleaned.split()]
  words = [w for w in words if w]
  if not words:
    return DEFAULT_PREFIX
  if len(words) >= 2:
    return words[0][0] + words[1][0]

  word = words[0]
  vowel_at = next((i for i, ch in enumerate(word) if ch in _VOWELS), None)
  second: str | None = None
  if vowel_at is not None:
    second = next((ch for ch in word[vowel_at + 1 :] if ch not in _VOWELS), None)
  if second is None:
    second = next((ch for ch in word[1:] if ch not in _VOWELS), None)
  if second is None and len(word) > 1:
    second = word[1]
  return word[0] + (second or "K")


def next_code_from_names(names: Iterable[str], prefix: str) -> str:
  pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
  highest = 0
  for name in names:
    m = pattern.match(name or "")
    if m:
      highest = max(highest, int(m.group(1)))
  return f"{prefix}-{highest + 1:02d}"


async def next_task_code(db: AsyncSession, *, project_id: str, prefix: str) -> str:
  # Read-then-insert; ux_tasks_project_name rejects the loser of a concurrent race.
  res = await db.execute(select(Task.name).where(Task.project_id == project_id, Task.name.ilike(f"{prefix}-%")))
  return next_code_from_names(res.scalars().all(), prefix)
