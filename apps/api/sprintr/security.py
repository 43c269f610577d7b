from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta, timezone

from fastapi import Response

from sprintr.auth.provider import AuthSession
from sprintr.config import settings

AUTH_COOKIE = "sprintr-access-token"
AUTH_REFRESH_COOKIE = "sprintr-refresh-token"
OAUTH_VERIFIER_COOKIE = "sprintr-code-verifier"

INVITE_CODE_ALPHABET = string.ascii_letters + string.digits


def generate_invite_code(length: int = 6) -> str:
  return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def _session_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=settings.session_ttl_days)


def set_session_cookies(response: Response, session: AuthSession) -> None:
  expires = _session_expires_at()
  for key, value in ((AUTH_COOKIE, session.access_token), (AUTH_REFRESH_COOKIE, session.refresh_token)):
    response.set_cookie(
      key=key,
      value=value,
      httponly=True,
      secure=settings.cookie_secure,
      samesite="strict",
      domain=settings.cookie_domain or None,
      path="/",
      max_age=int(settings.session_ttl_days * 86400),
      expires=expires,
    )


def clear_session_cookies(response: Response) -> None:
  response.delete_cookie(key=AUTH_COOKIE, path="/", domain=settings.cookie_domain or None)
  response.delete_cookie(key=AUTH_REFRESH_COOKIE, path="/", domain=settings.cookie_domain or None)
