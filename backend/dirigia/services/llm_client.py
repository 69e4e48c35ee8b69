"""Shared OpenAI client and upstream error mapping.

Both gateways (notice extraction and appeal generation) call the
OpenAI chat completions API.  Calls carry an explicit timeout and are
never retried: a transient failure is reported to the user at once.
"""

from __future__ import annotations

import logging
from functools import lru_cache

import openai
from openai import AsyncOpenAI

from dirigia.core.config import settings
from dirigia.core.errors import (
    DirigiaError,
    UpstreamQuotaError,
    UpstreamRateLimitError,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Return a process-wide async client configured from settings."""
    if not settings.OPENAI_API_KEY:
        raise UpstreamServiceError("Configuração OPENAI_API_KEY ausente.")
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
    )


def map_openai_error(exc: Exception, component: str) -> DirigiaError:
    """Translate an OpenAI SDK exception into a domain error.

    429 is a retryable rate limit unless the body says the quota is
    exhausted; 402 is also treated as quota exhaustion.
    """
    if isinstance(exc, openai.APIStatusError):
        code = getattr(exc, "code", None)
        logger.warning("[%s] upstream status=%s code=%s", component, exc.status_code, code)
        if exc.status_code == 402 or code == "insufficient_quota":
            return UpstreamQuotaError()
        if exc.status_code == 429:
            return UpstreamRateLimitError()
        return UpstreamServiceError()
    if isinstance(exc, openai.APITimeoutError):
        logger.warning("[%s] upstream timeout", component)
        return UpstreamServiceError("O serviço demorou a responder. Tente novamente.")
    logger.warning("[%s] upstream failure: %s", component, exc)
    return UpstreamServiceError()
