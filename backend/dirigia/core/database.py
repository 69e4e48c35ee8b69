"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application.  Postgres URLs are normalised to the
``psycopg`` async driver; plain ``sqlite`` URLs are upgraded to
``aiosqlite``.  When ``DATABASE_URL`` is unset a local SQLite database
is used in development (``DB_DEV_FALLBACK_SQLITE``).
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Dict, Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from dirigia.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./dirigia.db"

USING_SQLITE_FALLBACK: bool = False
LAST_DB_INIT_ERROR: Optional[str] = None


def normalise_database_url(raw_url: str) -> str:
    """Return ``raw_url`` rewritten for an async driver."""
    url_obj = make_url(raw_url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2", "postgresql+asyncpg"}:
        q = dict(url_obj.query or {})
        # Hosted Postgres prefers TLS; keep an explicit sslmode when given
        if not q.get("sslmode"):
            q["sslmode"] = "require"
        url_obj = url_obj.set(drivername="postgresql+psycopg", query=q)
    return url_obj.render_as_string(hide_password=False)


db_url = settings.DATABASE_URL
if not db_url:
    if not settings.DB_DEV_FALLBACK_SQLITE:
        raise RuntimeError(
            "No database URL provided via DATABASE_URL; with "
            "DB_DEV_FALLBACK_SQLITE=false, a Postgres URL is required."
        )
    db_url = SQLITE_FALLBACK_URL
    USING_SQLITE_FALLBACK = True
db_url = normalise_database_url(db_url)

engine_kwargs: dict[str, Any] = dict(echo=False, pool_pre_ping=True)

logger.info("Creating async engine with URL: %s", make_url(db_url).render_as_string(hide_password=True))
engine = create_async_engine(db_url, **engine_kwargs)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session.

    Work left uncommitted when the handler raises is rolled back before
    the session is closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables defined on the declarative ``Base``.

    Called during application startup.
    """
    global LAST_DB_INIT_ERROR
    try:
        async with engine.begin() as conn:
            # Import all models to ensure metadata is populated
            from dirigia.models import tables  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        LAST_DB_INIT_ERROR = str(e)
        logger.error("DB init failed: %s", e)
        raise


def get_db_debug_info() -> Dict[str, Any]:
    """Return non-sensitive information about the current DB engine."""
    info: Dict[str, Any] = {
        "using_sqlite_fallback": USING_SQLITE_FALLBACK,
        "environment": (settings.ENVIRONMENT or "development"),
    }
    if LAST_DB_INIT_ERROR:
        info["last_db_init_error"] = LAST_DB_INIT_ERROR
    url_obj = engine.url
    info.update(
        {
            "drivername": url_obj.drivername,
            "host": url_obj.host,
            "port": url_obj.port,
            "database": url_obj.database,
        }
    )
    return info
