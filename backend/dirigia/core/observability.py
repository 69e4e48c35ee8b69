"""Sentry wiring for the API process.

Everything here is a no-op while ``SENTRY_DSN`` is unset, and reporting
helpers never raise into request handling.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from dirigia.core.config import settings

logger = logging.getLogger(__name__)

# Headers that carry credentials
_SECRET_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})

_initialised = False


def _scrub_event(event: Dict[str, Any], hint: Dict[str, Any] | None = None):
	"""Strip credentials and payloads before an event leaves the process.

	Request bodies hold uploads, CPF numbers and webhook payloads; query
	strings hold webhook secrets and SSE tokens.
	"""
	request = event.get("request")
	if isinstance(request, dict):
		headers = request.get("headers")
		if isinstance(headers, dict):
			request["headers"] = {k: v for k, v in headers.items() if k.lower() not in _SECRET_HEADERS}
		request.pop("data", None)
		request.pop("query_string", None)
	return event


def init_sentry(service: str) -> bool:
	"""Initialise Sentry once per process; returns whether it is active."""
	global _initialised
	if not settings.SENTRY_DSN:
		return False
	if _initialised:
		return True
	sentry_sdk.init(
		dsn=settings.SENTRY_DSN,
		integrations=[FastApiIntegration(), SqlalchemyIntegration()],
		traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0),
		profiles_sample_rate=float(settings.SENTRY_PROFILES_SAMPLE_RATE or 0),
		environment=settings.ENVIRONMENT,
		release=settings.SENTRY_RELEASE,
		before_send=_scrub_event,
		send_default_pii=False,
	)
	sentry_sdk.set_tag("service", service)
	_initialised = True
	logger.info("[sentry] initialised for service=%s", service)
	return True


def _when_configured(func: Callable[..., None]) -> Callable[..., None]:
	"""Skip the call without a DSN; log instead of raising on SDK errors."""

	@functools.wraps(func)
	def wrapper(*args: Any, **kwargs: Any) -> None:
		if not settings.SENTRY_DSN:
			return
		try:
			func(*args, **kwargs)
		except Exception as exc:
			logger.debug("[sentry] %s failed: %s", func.__name__, exc)

	return wrapper


@_when_configured
def sentry_set_tags(tags: Dict[str, Any]) -> None:
	scope = sentry_sdk.get_current_scope()
	for key, value in (tags or {}).items():
		scope.set_tag(str(key), "" if value is None else str(value)[:128])


@_when_configured
def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
	sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


@_when_configured
def capture_exception(exc: BaseException) -> None:
	sentry_sdk.capture_exception(exc)


__all__ = ["init_sentry", "sentry_set_tags", "sentry_breadcrumb", "capture_exception"]
