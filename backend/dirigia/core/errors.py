"""Domain exceptions with stable, machine-readable error kinds.

Every failure that reaches a client carries an ``ErrorKind`` and a short
``code`` so callers can branch on the category instead of parsing the
Portuguese message.  The HTTP mapping lives on the exception; the
FastAPI handler in ``dirigia.api.error_handlers`` renders them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from dirigia.models.enums import ErrorKind


class DirigiaError(Exception):
    """Base class for errors rendered as ``{"error", "kind", "code"}``."""

    kind: ErrorKind = ErrorKind.PERSISTENCE
    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Erro interno. Tente novamente."

    def __init__(self, message: Optional[str] = None, *, extra: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = dict(extra or {})
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "kind": self.kind.value, "code": self.code}
        body.update(self.extra)
        return body


# -----------------------------------------------------------------------------
# Validation


class UploadValidationError(DirigiaError):
    kind = ErrorKind.VALIDATION
    status_code = 400

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class NotATrafficFineError(DirigiaError):
    kind = ErrorKind.VALIDATION
    code = "not_a_traffic_fine"
    status_code = 400
    default_message = "O documento enviado não foi identificado como uma multa de trânsito."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, extra={"isTrafficFine": False})


class PaymentRequestError(DirigiaError):
    kind = ErrorKind.VALIDATION
    code = "invalid_payment_request"
    status_code = 422


# -----------------------------------------------------------------------------
# Upstream (model and payment providers)


class UpstreamRateLimitError(DirigiaError):
    kind = ErrorKind.UPSTREAM
    code = "upstream_rate_limited"
    status_code = 429
    default_message = "Limite de requisições atingido. Tente novamente em alguns instantes."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, extra={"retryable": True})


class UpstreamQuotaError(DirigiaError):
    kind = ErrorKind.UPSTREAM
    code = "upstream_quota_exhausted"
    status_code = 402
    default_message = "Créditos insuficientes. Por favor, adicione créditos ao workspace."


class UpstreamServiceError(DirigiaError):
    kind = ErrorKind.UPSTREAM
    code = "upstream_error"
    status_code = 502
    default_message = "Serviço externo indisponível. Tente novamente."


# -----------------------------------------------------------------------------
# Entitlement


class LimitReachedError(DirigiaError):
    kind = ErrorKind.ENTITLEMENT
    code = "limit_reached"
    status_code = 403
    default_message = "Limite de recursos atingido. Assine o plano premium para continuar."

    def __init__(self, limit: int) -> None:
        super().__init__(extra={"limitReached": True, "limit": limit})


class PremiumRequiredError(DirigiaError):
    kind = ErrorKind.ENTITLEMENT
    code = "premium_required"
    status_code = 402
    default_message = "Assine o plano premium para baixar o recurso completo."

    def __init__(self, checkout_url: str) -> None:
        super().__init__(extra={"checkoutUrl": checkout_url})


# -----------------------------------------------------------------------------
# Persistence


class PersistenceError(DirigiaError):
    kind = ErrorKind.PERSISTENCE
    code = "persistence_error"
    status_code = 500
    default_message = "Erro ao salvar os dados. Tente novamente."


# -----------------------------------------------------------------------------
# Webhooks


class WebhookError(DirigiaError):
    """Webhook failures keep the provider-facing ``success: false`` flag."""

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, **super().to_body()}


class WebhookPayloadError(WebhookError):
    """Raised only for structurally unusable webhook bodies."""

    kind = ErrorKind.VALIDATION
    code = "invalid_webhook_payload"
    status_code = 400
    default_message = "Invalid payload - missing event"


class WebhookAuthError(WebhookError):
    kind = ErrorKind.AUTH
    code = "invalid_webhook_secret"
    status_code = 401
    default_message = "Invalid webhook secret"


class WebhookPersistenceError(WebhookError, PersistenceError):
    pass


# -----------------------------------------------------------------------------
# Auth and lookups


class AuthError(DirigiaError):
    kind = ErrorKind.AUTH
    code = "unauthorized"
    status_code = 401
    default_message = "Não autenticado."


class AuthConfigurationError(DirigiaError):
    """The server cannot verify tokens (missing secret, JWKS unreachable)."""

    kind = ErrorKind.AUTH
    code = "auth_not_configured"
    status_code = 500
    default_message = "Autenticação indisponível."


class NotFoundError(DirigiaError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"
    status_code = 404
    default_message = "Não encontrado."


class RealtimeUnavailableError(DirigiaError):
    kind = ErrorKind.UPSTREAM
    code = "realtime_unavailable"
    status_code = 503
    default_message = "Atualizações em tempo real indisponíveis."
