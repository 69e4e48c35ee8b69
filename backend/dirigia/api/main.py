"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and sets
up startup and shutdown events.  When run with uvicorn it initialises
the database and loads configuration from ``dirigia.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from dirigia.api.error_handlers import register_exception_handlers
from dirigia.api.routes.billing import router as billing_router
from dirigia.api.routes.events import router as events_router
from dirigia.api.routes.export import router as export_router
from dirigia.api.routes.health import router as health_router
from dirigia.api.routes.ocr import router as ocr_router
from dirigia.api.routes.profile import router as profile_router
from dirigia.api.routes.resources import router as resources_router
from dirigia.api.routes.webhooks import router as webhooks_router
from dirigia.core.config import settings
from dirigia.core.database import get_db_debug_info, init_db
from dirigia.core.errors import NotFoundError
from dirigia.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version="1.0.0",
    lifespan=lifespan,
)


# Enrich the Sentry scope with lightweight request info
@app.middleware("http")
async def sentry_context_middleware(request: Request, call_next):
    if settings.SENTRY_DSN:
        scope = sentry_sdk.get_current_scope()
        scope.set_tag("path", request.url.path)
        scope.set_tag("method", request.method)
    return await call_next(request)


def build_cors_origins() -> list[str]:
    """CORS origins.

    1. In development => allow all ( * ).
    2. Otherwise start from BACKEND_CORS_ORIGINS.
    3. Ensure the FRONTEND_BASE_URL origin is present.
    4. Deduplicate while preserving order.
    """
    if settings.is_development:
        return ["*"]
    origins = list(settings.BACKEND_CORS_ORIGINS or [])
    parsed = urlparse(settings.FRONTEND_BASE_URL or "")
    if parsed.scheme and parsed.netloc:
        front_origin = f"{parsed.scheme}://{parsed.netloc}"
        if "*" not in origins and front_origin not in origins:
            origins.append(front_origin)
    seen = set()
    return [o for o in origins if not (o in seen or seen.add(o))]


allow_origins = build_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    # Browsers reject credentialed requests against a wildcard origin
    allow_credentials="*" not in allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(ocr_router)
app.include_router(resources_router)
app.include_router(billing_router)
app.include_router(webhooks_router)
app.include_router(events_router)
app.include_router(export_router)
app.include_router(profile_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


@app.get("/debug/db")
async def db_debug():
    """Return non-sensitive DB diagnostics (development only)."""
    if not settings.is_development:
        raise NotFoundError()
    return get_db_debug_info()
