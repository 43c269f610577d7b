from __future__ import annotations

import os
import secrets
import sys
import uuid
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Must be set before sprintr.config builds its settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("MAIL_PROVIDER", "local")
os.environ.setdefault("TRUSTED_HOSTS", "localhost,test")
os.environ.setdefault("APP_BASE_URL", "https://sprintr.test")
os.environ["REDIS_URL"] = ""

from sprintr.auth.provider import AuthSession, AuthUser
from sprintr.deps import get_auth_provider, get_db, get_mailer, get_storage
from sprintr.errors import AuthProviderError, MailError, StorageError
from sprintr.main import app
from sprintr.models import Base
from sprintr.notifications.service import EmailMessage
from sprintr.rate_limit import limiter
from sprintr.security import AUTH_COOKIE, AUTH_REFRESH_COOKIE

DEFAULT_PASSWORD = "correct-horse-1"


class FakeAuthProvider:
  """In-memory stand-in for the hosted auth service."""

  def __init__(self) -> None:
    self.users: dict[str, AuthUser] = {}
    self.passwords: dict[str, str] = {}
    self.access_tokens: dict[str, str] = {}
    self.refresh_tokens: dict[str, str] = {}
    self.oauth_codes: dict[str, str] = {}
    self.signed_out: list[str] = []
    self.require_confirmation = False

  def add_user(self, email: str, *, name: str | None = None, password: str = DEFAULT_PASSWORD, metadata: dict | None = None) -> AuthUser:
    meta = dict(metadata or {})
    if name:
      meta["full_name"] = name
    user = AuthUser(id=str(uuid.uuid4()), email=email.lower(), user_metadata=meta)
    self.users[user.id] = user
    self.passwords[user.email] = password
    return user

  def issue_session(self, user_id: str) -> AuthSession:
    access = f"access-{secrets.token_hex(8)}"
    refresh = f"refresh-{secrets.token_hex(8)}"
    self.access_tokens[access] = user_id
    self.refresh_tokens[refresh] = user_id
    return AuthSession(access_token=access, refresh_token=refresh, user=self.users[user_id])

  def expire(self, access_token: str) -> None:
    self.access_tokens.pop(access_token, None)

  def _by_email(self, email: str) -> AuthUser | None:
    return next((u for u in self.users.values() if u.email == email.lower()), None)

  async def get_user(self, access_token: str) -> AuthUser:
    user_id = self.access_tokens.get(access_token)
    if user_id is None:
      raise AuthProviderError(status_code=401, message="invalid JWT")
    return self.users[user_id]

  async def refresh_session(self, refresh_token: str) -> AuthSession:
    user_id = self.refresh_tokens.pop(refresh_token, None)
    if user_id is None:
      raise AuthProviderError(status_code=400, message="Invalid Refresh Token")
    return self.issue_session(user_id)

  async def sign_in_with_password(self, *, email: str, password: str) -> AuthSession:
    user = self._by_email(email)
    if user is None or self.passwords.get(user.email) != password:
      raise AuthProviderError(status_code=400, message="Invalid login credentials")
    return self.issue_session(user.id)

  async def sign_up(self, *, email: str, password: str, full_name: str) -> tuple[AuthUser | None, AuthSession | None]:
    if self._by_email(email):
      raise AuthProviderError(status_code=422, message="User already registered")
    user = self.add_user(email, name=full_name, password=password)
    if self.require_confirmation:
      return user, None
    return user, self.issue_session(user.id)

  async def exchange_code_for_session(self, *, code: str, code_verifier: str | None = None) -> AuthSession:
    user_id = self.oauth_codes.pop(code, None)
    if user_id is None:
      raise AuthProviderError(status_code=400, message="invalid flow state")
    return self.issue_session(user_id)

  async def sign_out(self, access_token: str) -> None:
    self.access_tokens.pop(access_token, None)
    self.signed_out.append(access_token)

  async def admin_get_user(self, user_id: str) -> AuthUser | None:
    return self.users.get(user_id)


class FakeStorage:
  def __init__(self) -> None:
    self.objects: dict[tuple[str, str], bytes] = {}
    self.removed: list[str] = []
    self.fail_uploads = False

  async def upload(self, bucket: str, path: str, content: bytes, *, content_type: str | None = None, upsert: bool = True) -> str:
    if self.fail_uploads:
      raise StorageError(status_code=500, message="storage unavailable")
    self.objects[(bucket, path)] = content
    return path

  def public_url(self, bucket: str, path: str) -> str:
    return f"https://storage.test/{bucket}/{path}"

  async def remove(self, bucket: str, paths: list[str]) -> None:
    for p in paths:
      self.objects.pop((bucket, p), None)
      self.removed.append(p)


class RecordingMailer:
  def __init__(self) -> None:
    self.sent: list[EmailMessage] = []
    self.fail = False

  async def send(self, msg: EmailMessage) -> dict[str, Any]:
    if self.fail:
      raise MailError(status_code=500, message="mail function crashed")
    self.sent.append(msg)
    return {"provider": "recording", "status": "sent"}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def sessions():
  engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
  yield async_sessionmaker(engine, expire_on_commit=False)
  await engine.dispose()


@pytest.fixture
def auth() -> FakeAuthProvider:
  return FakeAuthProvider()


@pytest.fixture
def storage() -> FakeStorage:
  return FakeStorage()


@pytest.fixture
def mailer() -> RecordingMailer:
  return RecordingMailer()


@pytest.fixture
async def client(sessions, auth: FakeAuthProvider, storage: FakeStorage, mailer: RecordingMailer) -> AsyncClient:
  async def _db():
    async with sessions() as db:
      yield db

  limiter.reset_prefix("auth:")
  app.dependency_overrides[get_db] = _db
  app.dependency_overrides[get_auth_provider] = lambda: auth
  app.dependency_overrides[get_storage] = lambda: storage
  app.dependency_overrides[get_mailer] = lambda: mailer
  transport = ASGITransport(app=app)
  try:
    async with AsyncClient(transport=transport, base_url="http://localhost") as c:
      yield c
  finally:
    app.dependency_overrides.clear()
    limiter.reset_prefix("auth:")


async def login(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> None:
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  cookies = res.headers.get_list("set-cookie")
  assert any(c.startswith(f"{AUTH_COOKIE}=") for c in cookies)
  assert any(c.startswith(f"{AUTH_REFRESH_COOKIE}=") for c in cookies)


async def sign_in_new_user(client: AsyncClient, auth: FakeAuthProvider, email: str, name: str | None = None) -> AuthUser:
  user = auth.add_user(email, name=name)
  await login(client, email)
  return user


async def create_workspace(client: AsyncClient, name: str = "Acme") -> dict:
  res = await client.post("/workspaces", data={"name": name})
  assert res.status_code == 200, res.text
  return res.json()["data"]


async def join_workspace(client: AsyncClient, workspace: dict) -> None:
  res = await client.post(f"/workspaces/{workspace['$id']}/join", json={"code": workspace["inviteCode"]})
  assert res.status_code == 200, res.text


async def create_project(client: AsyncClient, workspace_id: str, name: str = "Sprint Runner") -> dict:
  res = await client.post("/projects", data={"name": name, "workspaceId": workspace_id})
  assert res.status_code == 200, res.text
  return res.json()["data"]


async def list_members(client: AsyncClient, workspace_id: str) -> list[dict]:
  res = await client.get("/members", params={"workspaceId": workspace_id})
  assert res.status_code == 200, res.text
  return res.json()["data"]["documents"]


async def member_for(client: AsyncClient, workspace_id: str, user_id: str) -> dict:
  return next(m for m in await list_members(client, workspace_id) if m["userId"] == user_id)


async def create_task(client: AsyncClient, *, workspace_id: str, project_id: str, assignee_id: str, **overrides: Any) -> dict:
  payload = {
    "summary": "Fix login redirect",
    "status": "TODO",
    "workType": "BUG",
    "priority": "HIGH",
    "workspaceId": workspace_id,
    "projectId": project_id,
    "assigneeId": assignee_id,
  }
  payload.update(overrides)
  res = await client.post("/tasks", json=payload)
  assert res.status_code == 200, res.text
  return res.json()["data"]
