from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from sprintr.config import settings
from sprintr.errors import ApiError, ExternalServiceError
from sprintr.logging_config import configure_logging
from sprintr.routers.auth import router as auth_router
from sprintr.routers.members import router as members_router
from sprintr.routers.notifications import router as notifications_router
from sprintr.routers.projects import router as projects_router
from sprintr.routers.tasks import router as tasks_router
from sprintr.routers.workspaces import router as workspaces_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
  configure_logging()
  logger.info("sprintr api starting version=%s", settings.app_version)
  yield


app = FastAPI(
  lifespan=lifespan,
  title="Sprintr API",
  version=settings.app_version,
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(ApiError)
async def _api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
  fields = [{"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")} for e in exc.errors()]
  return JSONResponse(status_code=400, content={"error": "Invalid request.", "fields": fields})


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=getattr(exc, "headers", None))


@app.exception_handler(IntegrityError)
async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
  logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
  return JSONResponse(status_code=409, content={"error": "Conflict."})


@app.exception_handler(ExternalServiceError)
async def _external_error_handler(request: Request, exc: ExternalServiceError) -> JSONResponse:
  logger.error("%s service error on %s %s: %s (%s)", exc.service, request.method, request.url.path, exc.message, exc.status_code)
  return JSONResponse(status_code=502, content={"error": "Upstream service unavailable."})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(workspaces_router)
app.include_router(members_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(notifications_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


def run() -> None:
  uvicorn.run("sprintr.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
  run()
