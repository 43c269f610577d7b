from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from sprintr.errors import AuthProviderError
from sprintr.supabase import SupabaseProject, request_json


@dataclass(frozen=True)
class AuthUser:
  id: str
  email: str | None = None
  user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSession:
  access_token: str
  refresh_token: str
  user: AuthUser | None = None


IdentitySource = Callable[[AuthUser], str | None]


def _clean(value: Any) -> str | None:
  if isinstance(value, str) and value.strip():
    return value.strip()
  return None


def _full_name(user: AuthUser) -> str | None:
  return _clean(user.user_metadata.get("full_name"))


def _metadata_name(user: AuthUser) -> str | None:
  return _clean(user.user_metadata.get("name"))


def _email_local_part(user: AuthUser) -> str | None:
  if not user.email:
    return None
  return _clean(user.email.split("@", 1)[0])


# Checked in order; the first non-empty value wins.
DISPLAY_NAME_SOURCES: tuple[IdentitySource, ...] = (_full_name, _metadata_name, _email_local_part)


def display_name(user: AuthUser | None) -> str:
  if user is None:
    return "User"
  for source in DISPLAY_NAME_SOURCES:
    name = source(user)
    if name:
      return name
  return "User"


def _user_from_payload(payload: Any) -> AuthUser | None:
  if not isinstance(payload, dict) or not payload.get("id"):
    return None
  meta = payload.get("user_metadata")
  return AuthUser(
    id=str(payload["id"]),
    email=payload.get("email") or None,
    user_metadata=meta if isinstance(meta, dict) else {},
  )


def _session_from_payload(payload: Any) -> AuthSession | None:
  if not isinstance(payload, dict):
    return None
  access = payload.get("access_token")
  refresh = payload.get("refresh_token")
  if not access or not refresh:
    return None
  return AuthSession(access_token=str(access), refresh_token=str(refresh), user=_user_from_payload(payload.get("user")))


class AuthProvider(Protocol):
  async def get_user(self, access_token: str) -> AuthUser: ...

  async def refresh_session(self, refresh_token: str) -> AuthSession: ...

  async def sign_in_with_password(self, *, email: str, password: str) -> AuthSession: ...

  async def sign_up(self, *, email: str, password: str, full_name: str) -> tuple[AuthUser | None, AuthSession | None]: ...

  async def exchange_code_for_session(self, *, code: str, code_verifier: str | None = None) -> AuthSession: ...

  async def sign_out(self, access_token: str) -> None: ...

  async def admin_get_user(self, user_id: str) -> AuthUser | None: ...


class SupabaseAuthProvider:
  """GoTrue REST client: token grants use the anon key, user lookups the service key."""

  def __init__(self, project: SupabaseProject) -> None:
    self.project = project

  async def _token(self, grant_type: str, body: dict[str, Any]) -> AuthSession:
    async with self.project.httpx_client() as client:
      data = await request_json(client, "POST", "/auth/v1/token", params={"grant_type": grant_type}, json=body, error_cls=AuthProviderError)
    session = _session_from_payload(data)
    if session is None:
      raise AuthProviderError(status_code=401, message="No session returned")
    return session

  async def get_user(self, access_token: str) -> AuthUser:
    async with self.project.httpx_client(bearer=access_token) as client:
      data = await request_json(client, "GET", "/auth/v1/user", error_cls=AuthProviderError)
    user = _user_from_payload(data)
    if user is None:
      raise AuthProviderError(status_code=401, message="Invalid access token")
    return user

  async def refresh_session(self, refresh_token: str) -> AuthSession:
    return await self._token("refresh_token", {"refresh_token": refresh_token})

  async def sign_in_with_password(self, *, email: str, password: str) -> AuthSession:
    return await self._token("password", {"email": email, "password": password})

  async def sign_up(self, *, email: str, password: str, full_name: str) -> tuple[AuthUser | None, AuthSession | None]:
    body = {"email": email, "password": password, "data": {"full_name": full_name}}
    async with self.project.httpx_client() as client:
      data = await request_json(client, "POST", "/auth/v1/signup", json=body, error_cls=AuthProviderError)
    session = _session_from_payload(data)
    if session is not None:
      return session.user, session
    # Email confirmation enabled: the user object comes back on its own.
    return _user_from_payload(data), None

  async def exchange_code_for_session(self, *, code: str, code_verifier: str | None = None) -> AuthSession:
    body: dict[str, Any] = {"auth_code": code}
    if code_verifier:
      body["code_verifier"] = code_verifier
    return await self._token("pkce", body)

  async def sign_out(self, access_token: str) -> None:
    async with self.project.httpx_client(bearer=access_token) as client:
      await request_json(client, "POST", "/auth/v1/logout", error_cls=AuthProviderError)

  async def admin_get_user(self, user_id: str) -> AuthUser | None:
    async with self.project.httpx_client(service=True) as client:
      try:
        data = await request_json(client, "GET", f"/auth/v1/admin/users/{user_id}", error_cls=AuthProviderError)
      except AuthProviderError as e:
        if e.status_code == 404:
          return None
        raise
    return _user_from_payload(data)
