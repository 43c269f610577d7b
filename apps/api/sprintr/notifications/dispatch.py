from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
  ok: bool
  value: Any = None
  error: str | None = None


async def run_best_effort(label: str, fn: Callable[[], Awaitable[Any]]) -> DispatchResult:
  """
  Await a non-critical side effect.

  Failures are logged and folded into the result; nothing is raised, so the
  caller's mutation and response are unaffected.
  """
  try:
    return DispatchResult(ok=True, value=await fn())
  except Exception as e:
    logger.exception("%s failed", label)
    return DispatchResult(ok=False, error=str(e)[:500])
