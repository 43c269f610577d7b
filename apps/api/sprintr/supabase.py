from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from sprintr.config import settings
from sprintr.errors import ExternalServiceError


def normalize_base_url(base_url: str) -> str:
  b = (base_url or "").strip().rstrip("/")
  if not b:
    raise ValueError("supabase url is required")
  if not (b.startswith("http://") or b.startswith("https://")):
    b = "https://" + b
  return b


def _extract_error(payload: Any) -> str:
  if isinstance(payload, dict):
    for key in ("error_description", "msg", "message", "error"):
      val = payload.get(key)
      if isinstance(val, str) and val.strip():
        return val.strip()
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:500]
  return "Request failed"


async def request_json(
  client: httpx.AsyncClient,
  method: str,
  path: str,
  *,
  error_cls: type[ExternalServiceError] = ExternalServiceError,
  **kwargs: Any,
) -> Any:
  r = await client.request(method, path, **kwargs)
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = (r.text or "")[:800]
    details = payload if isinstance(payload, dict) else {}
    raise error_cls(status_code=r.status_code, message=_extract_error(payload), details=details)
  if r.status_code == 204 or not r.content:
    return None
  return r.json()


@dataclass
class SupabaseProject:
  url: str
  anon_key: str
  service_role_key: str
  timeout: float = 15

  def httpx_client(self, *, service: bool = False, bearer: str | None = None) -> httpx.AsyncClient:
    key = self.service_role_key if service else self.anon_key
    headers = {"apikey": key, "Accept": "application/json"}
    token = bearer or (key if service else None)
    if token:
      headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=normalize_base_url(self.url), headers=headers, timeout=self.timeout)


def project_from_settings() -> SupabaseProject:
  return SupabaseProject(
    url=settings.supabase_url,
    anon_key=settings.supabase_anon_key,
    service_role_key=settings.supabase_service_role_key,
  )
