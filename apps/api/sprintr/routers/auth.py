from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from sprintr.auth.provider import AuthProvider, AuthSession
from sprintr.config import settings
from sprintr.context import SessionUser
from sprintr.deps import get_auth_provider, get_optional_session_user, get_session_user
from sprintr.errors import AuthenticationFailure, AuthProviderError, BusinessRuleViolation
from sprintr.notifications.dispatch import run_best_effort
from sprintr.rate_limit import rate_limit_or_429
from sprintr.schemas import DataOut, LoginIn, RegisterIn, RegisterOut, SessionIn, SessionUserOut, SuccessOut
from sprintr.security import AUTH_COOKIE, OAUTH_VERIFIER_COOKIE, clear_session_cookies, set_session_cookies

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_ip(request: Request) -> str:
  return request.client.host if request.client else "unknown"


def _user_out(user: SessionUser) -> SessionUserOut:
  return SessionUserOut(id=user.id, name=user.name, email=user.email)


@router.get("/callback")
async def oauth_callback(
  code: str = Query(min_length=1),
  code_verifier: str | None = Cookie(default=None, alias=OAUTH_VERIFIER_COOKIE),
  auth: AuthProvider = Depends(get_auth_provider),
) -> RedirectResponse:
  base = settings.app_base_url.rstrip("/")
  try:
    session = await auth.exchange_code_for_session(code=code.strip(), code_verifier=code_verifier)
  except AuthProviderError:
    logger.warning("oauth code exchange failed", exc_info=True)
    return RedirectResponse(f"{base}/sign-in?error=oauth", status_code=302)

  resp = RedirectResponse(base or "/", status_code=302)
  set_session_cookies(resp, session)
  resp.delete_cookie(key=OAUTH_VERIFIER_COOKIE, path="/", domain=settings.cookie_domain or None)
  return resp


@router.get("/current", response_model=DataOut[SessionUserOut | None])
async def current_user(user: SessionUser | None = Depends(get_optional_session_user)) -> dict:
  return {"data": _user_out(user) if user else None}


@router.post("/login", response_model=SuccessOut)
async def login(payload: LoginIn, request: Request, response: Response, auth: AuthProvider = Depends(get_auth_provider)) -> SuccessOut:
  ip = _client_ip(request)
  email_key = payload.email.strip().lower()
  rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  rate_limit_or_429(key=f"auth:login:email:{email_key}", limit=int(settings.rate_limit_login_email_per_minute), window_seconds=60)

  try:
    session = await auth.sign_in_with_password(email=email_key, password=payload.password)
  except AuthProviderError:
    logger.info("login rejected ip=%s", ip)
    raise AuthenticationFailure("Invalid credentials.")
  set_session_cookies(response, session)
  return SuccessOut()


@router.post("/session", response_model=SuccessOut)
async def store_session(payload: SessionIn, response: Response) -> SuccessOut:
  set_session_cookies(response, AuthSession(access_token=payload.accessToken, refresh_token=payload.refreshToken))
  return SuccessOut()


@router.post("/register", response_model=RegisterOut)
async def register(payload: RegisterIn, request: Request, response: Response, auth: AuthProvider = Depends(get_auth_provider)) -> RegisterOut:
  ip = _client_ip(request)
  rate_limit_or_429(key=f"auth:register:ip:{ip}", limit=int(settings.rate_limit_register_ip_per_minute), window_seconds=60)

  try:
    _, session = await auth.sign_up(email=payload.email.strip().lower(), password=payload.password, full_name=payload.name)
  except AuthProviderError as e:
    raise BusinessRuleViolation(e.message or "Failed to register.")
  if session is not None:
    set_session_cookies(response, session)
  return RegisterOut(success=True, needsConfirmation=session is None)


@router.post("/logout", response_model=SuccessOut)
async def logout(
  response: Response,
  user: SessionUser = Depends(get_session_user),
  auth: AuthProvider = Depends(get_auth_provider),
  access_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
) -> SuccessOut:
  if access_token:
    await run_best_effort("provider sign-out", lambda: auth.sign_out(access_token))
  clear_session_cookies(response)
  logger.info("logout user=%s", user.id)
  return SuccessOut()
