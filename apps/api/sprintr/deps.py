from __future__ import annotations

import logging

from fastapi import Cookie, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from sprintr.auth.provider import AuthProvider, SupabaseAuthProvider
from sprintr.context import RequestContext, SessionUser
from sprintr.db import SessionLocal
from sprintr.errors import AuthenticationFailure, AuthProviderError
from sprintr.notifications.service import MailProvider, provider_for
from sprintr.security import AUTH_COOKIE, AUTH_REFRESH_COOKIE, set_session_cookies
from sprintr.storage import StorageClient, SupabaseStorageClient
from sprintr.supabase import project_from_settings

logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def get_auth_provider() -> AuthProvider:
  return SupabaseAuthProvider(project_from_settings())


def get_storage() -> StorageClient:
  return SupabaseStorageClient(project_from_settings())


def get_mailer() -> MailProvider:
  return provider_for()


async def get_session_user(
  response: Response,
  auth: AuthProvider = Depends(get_auth_provider),
  access_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
  refresh_token: str | None = Cookie(default=None, alias=AUTH_REFRESH_COOKIE),
) -> SessionUser:
  if not access_token or not refresh_token:
    raise AuthenticationFailure()
  try:
    return SessionUser.from_auth_user(await auth.get_user(access_token))
  except AuthProviderError:
    pass

  try:
    session = await auth.refresh_session(refresh_token)
  except AuthProviderError:
    logger.info("session refresh rejected")
    raise AuthenticationFailure()
  set_session_cookies(response, session)
  user = session.user
  if user is None:
    try:
      user = await auth.get_user(session.access_token)
    except AuthProviderError:
      raise AuthenticationFailure()
  return SessionUser.from_auth_user(user)


async def get_optional_session_user(
  response: Response,
  auth: AuthProvider = Depends(get_auth_provider),
  access_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
  refresh_token: str | None = Cookie(default=None, alias=AUTH_REFRESH_COOKIE),
) -> SessionUser | None:
  try:
    return await get_session_user(response, auth, access_token, refresh_token)
  except AuthenticationFailure:
    return None


async def get_context(
  db: AsyncSession = Depends(get_db),
  user: SessionUser = Depends(get_session_user),
  auth: AuthProvider = Depends(get_auth_provider),
  storage: StorageClient = Depends(get_storage),
  mailer: MailProvider = Depends(get_mailer),
) -> RequestContext:
  return RequestContext(db=db, user=user, auth=auth, storage=storage, mailer=mailer)
