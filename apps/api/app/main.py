from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.ai.agents import AIOutputError, NoBoardItemsError
from app.ai.providers import AIProviderError
from app.config import settings
from app.logging_setup import configure_logging
from app.routers.account import router as account_router
from app.routers.ai import router as ai_router
from app.routers.analytics import router as analytics_router
from app.routers.audit import router as audit_router
from app.routers.auth import router as auth_router
from app.routers.columns import router as columns_router
from app.routers.imports import router as imports_router
from app.routers.init import router as init_router
from app.routers.milestones import router as milestones_router
from app.routers.projects import router as projects_router
from app.routers.tags import router as tags_router
from app.routers.tasks import router as tasks_router
from app.routers.workspace import router as workspace_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

app = FastAPI(
  title="AI Kanban API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
  details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
  return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": details})


@app.exception_handler(AIProviderError)
async def _ai_provider_error_handler(_: Request, exc: AIProviderError) -> JSONResponse:
  if exc.status_code == 429:
    logger.warning("ai provider rate limited: %s", exc)
    return JSONResponse(status_code=429, content={"detail": "AI provider rate limit exceeded. Please try again later."})
  logger.error("ai provider failed: %s", exc)
  return JSONResponse(status_code=500, content={"detail": "Failed to generate AI prioritization"})


@app.exception_handler(AIOutputError)
async def _ai_output_error_handler(_: Request, exc: AIOutputError) -> JSONResponse:
  logger.error("ai %s stage returned unusable output: %s", exc.stage, exc)
  return JSONResponse(
    status_code=400,
    content={"detail": "Invalid request or AI response format", "stage": exc.stage, "details": exc.details},
  )


@app.exception_handler(NoBoardItemsError)
async def _no_board_items_handler(_: Request, exc: NoBoardItemsError) -> JSONResponse:
  return JSONResponse(status_code=400, content={"detail": str(exc)})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

for _router in (
  auth_router,
  init_router,
  projects_router,
  milestones_router,
  tasks_router,
  tags_router,
  columns_router,
  analytics_router,
  imports_router,
  ai_router,
  workspace_router,
  account_router,
  audit_router,
):
  app.include_router(_router, prefix=API_PREFIX)


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


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


@app.on_event("startup")
async def _startup() -> None:
  configure_logging()
  if _is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  logger.info("api starting version=%s ai_provider=%s", settings.app_version, settings.ai_provider)
