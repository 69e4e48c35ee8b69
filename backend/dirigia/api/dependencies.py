"""Common dependencies for FastAPI routes.

Routers obtain the database session, the authenticated profile and
every service through these functions so tests can swap any of them
with ``app.dependency_overrides``.
"""

from __future__ import annotations

from dirigia.core.database import get_db  # noqa: F401  (re-exported for routers)
from dirigia.core.errors import RealtimeUnavailableError
from dirigia.core.security import get_current_profile  # noqa: F401  (re-exported for routers)
from dirigia.services.checkout_service import CheckoutService
from dirigia.services.extraction_service import ExtractionService
from dirigia.services.generation_service import GenerationService
from dirigia.services.payment_events import get_redis
from dirigia.services.payment_gateway import AbacatePayClient
from dirigia.services.payment_service import PaymentService


async def get_redis_client():
    """Return the shared async Redis client or 503 when Redis is disabled."""
    client = get_redis()
    if client is None:
        raise RealtimeUnavailableError()
    return client


def get_extraction_service() -> ExtractionService:
    return ExtractionService()


def get_generation_service() -> GenerationService:
    return GenerationService()


def get_payment_client() -> AbacatePayClient:
    return AbacatePayClient()


def get_checkout_service() -> CheckoutService:
    return CheckoutService(get_payment_client())


def get_payment_service() -> PaymentService:
    return PaymentService()
