"""Runtime settings for the DirigIA API.

All tunables live on ``Settings`` and are read from the process
environment.  Local development may keep them in a ``.env`` file at the
repository root or in ``backend/``; real environment variables always
win over file values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[2]


def _env_files() -> list[str]:
    """Existing .env files, highest priority first (repo root, cwd lookup, backend/)."""
    found: list[str] = []
    for candidate in (_BACKEND_DIR.parent / ".env", find_dotenv(usecwd=True), _BACKEND_DIR / ".env"):
        path = str(candidate) if candidate else ""
        if path and Path(path).is_file() and path not in found:
            found.append(path)
    return found


ENV_FILES = _env_files()
for _path in ENV_FILES:
    load_dotenv(dotenv_path=_path, override=False)


class Settings(BaseSettings):
    """Application settings; every attribute maps to an upper-case env var."""

    model_config = SettingsConfigDict(
        env_file=tuple(ENV_FILES) or None,
        case_sensitive=True,
        extra="allow",
    )

    # API Settings
    PROJECT_NAME: str = "DirigIA"
    ENVIRONMENT: str = Field(default="development")

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    # Use a local SQLite file when no DATABASE_URL is configured
    DB_DEV_FALLBACK_SQLITE: bool = Field(default=True)

    # Redis (payment status fan-out).  Empty disables publishing.
    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    # Auth (Supabase-issued JWTs)
    DEV_AUTH_BYPASS: bool = Field(default=False)
    SUPABASE_URL: Optional[str] = Field(default=None)
    SUPABASE_JWT_SECRET: Optional[str] = Field(default=None)
    SUPABASE_JWT_AUDIENCE: str = Field(default="authenticated")

    # OpenAI
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    OCR_MODEL: str = Field(default="gpt-4o-mini")
    GENERATION_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TIMEOUT_SECONDS: float = Field(default=60.0)

    # File Upload
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_UPLOAD_TYPES: set[str] = {"application/pdf", "image/jpeg", "image/png"}
    PDF_RENDER_SCALE: float = Field(default=2.0)
    OCR_IMAGE_MAX_EDGE: int = Field(default=2048)

    # Entitlement
    FREE_PREVIEW_CHARS: int = Field(default=500)
    # Maximum generated resources on the free plan; unset disables the check
    FREE_PLAN_RESOURCE_LIMIT: Optional[int] = Field(default=None)

    # Payments
    ABACATEPAY_API_URL: str = Field(default="https://api.abacatepay.com")
    ABACATEPAY_API_KEY: Optional[str] = Field(default=None)
    ABACATEPAY_WEBHOOK_SECRET: Optional[str] = Field(default=None)
    CAKTO_WEBHOOK_SECRET: Optional[str] = Field(default=None)
    CAKTO_CHECKOUT_URL: str = Field(default="https://pay.cakto.com.br/dirigia-premium")
    PLAN_PRICE_MONTHLY_CENTS: int = Field(default=4990)
    PLAN_PRICE_ANNUAL_CENTS: int = Field(default=14990)
    PAYMENT_HTTP_TIMEOUT_SECONDS: float = Field(default=10.0)

    # Capture permission priming
    CAPTURE_PERMISSION_TTL_DAYS: int = Field(default=180)

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
    )
    # Frontend base URL used for checkout return links
    FRONTEND_BASE_URL: str = Field(default="http://localhost:5173")

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_RELEASE: Optional[str] = Field(default=None)

    @property
    def is_development(self) -> bool:
        return (self.ENVIRONMENT or "development").lower() == "development"


# Instantiate global settings
settings = Settings()


def plan_price_cents(plan: str) -> int:
    """Return the one-time price in cents for a checkout plan key."""
    if plan == "annual":
        return settings.PLAN_PRICE_ANNUAL_CENTS
    return settings.PLAN_PRICE_MONTHLY_CENTS
