from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskhive.config import settings
from taskhive.db import init_models
from taskhive.errors import DomainError
from taskhive.routers.boards import router as boards_router
from taskhive.routers.comments import router as comments_router
from taskhive.routers.notifications import router as notifications_router
from taskhive.routers.projects import router as projects_router
from taskhive.routers.realtime import router as realtime_router
from taskhive.routers.tasks import router as tasks_router
from taskhive.routers.users import router as users_router

PLACEHOLDER_SECRETS = {"dev-secret-change-me", "replace_with_strong_random_secret"}

logging.basicConfig(
  level=getattr(logging, settings.log_level.upper(), logging.INFO),
  format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("taskhive.api")

app = FastAPI(
  title="Taskhive API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(DomainError)
async def _domain_error_handler(_, exc: DomainError) -> JSONResponse:
  if exc.status_code >= 500:
    logger.error("domain error: %s", exc.message)
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(users_router)
app.include_router(projects_router)
app.include_router(boards_router)
app.include_router(tasks_router)
app.include_router(comments_router)
app.include_router(notifications_router)
app.include_router(realtime_router)


@app.middleware("http")
async def _request_log_middleware(request, call_next):
  start = monotonic()
  try:
    response = await call_next(request)
  except Exception:
    logger.exception("%s %s failed", request.method, request.url.path)
    raise
  elapsed_ms = (monotonic() - start) * 1000.0
  logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  response.headers.setdefault("X-Response-Time", f"{elapsed_ms:.1f}ms")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  if settings.is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in PLACEHOLDER_SECRETS:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  if settings.db_auto_create:
    logger.info("creating tables for %s", settings.database_url.rsplit("@", 1)[-1])
    await init_models()
