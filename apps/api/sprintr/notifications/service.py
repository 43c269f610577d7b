from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sprintr.config import settings
from sprintr.errors import MailError
from sprintr.supabase import SupabaseProject, project_from_settings, request_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
  to: str
  subject: str
  html: str


class MailProvider(Protocol):
  async def send(self, msg: EmailMessage) -> dict[str, Any]: ...


class LocalMailProvider:
  async def send(self, msg: EmailMessage) -> dict[str, Any]:
    logger.info("local mail to=%s subject=%s (%d bytes html)", msg.to, msg.subject, len(msg.html))
    return {"provider": "local", "status": "sent", "detail": {"to": msg.to, "subject": msg.subject}}


class MailFunctionProvider:
  """Invokes the serverless mail function with `{to, subject, html}`."""

  def __init__(self, project: SupabaseProject, function_name: str) -> None:
    self.project = project
    self.function_name = function_name

  async def send(self, msg: EmailMessage) -> dict[str, Any]:
    payload = {"to": msg.to, "subject": msg.subject, "html": msg.html}
    async with self.project.httpx_client(service=True) as client:
      data = await request_json(client, "POST", f"/functions/v1/{self.function_name}", json=payload, error_cls=MailError)
    return {"provider": "function", "status": "sent", "detail": data if isinstance(data, dict) else {}}


def provider_for(name: str | None = None) -> MailProvider:
  p = (name or settings.mail_provider or "local").strip().lower()
  if p == "local":
    return LocalMailProvider()
  if p == "function":
    return MailFunctionProvider(project_from_settings(), settings.mail_function_name)
  raise ValueError(f"Unsupported mail provider: {p}")
