"""AbacatePay billing API client.

Thin async wrapper over the three provider calls the app needs:
create a one-time billing, list billings and (dev mode) simulate a PIX
payment.  Every call has an explicit timeout; failures surface as
``UpstreamServiceError`` and the provider body is only logged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from dirigia.core.config import settings
from dirigia.core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class AbacatePayClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.ABACATEPAY_API_KEY
        self.base_url = (base_url or settings.ABACATEPAY_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYMENT_HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise UpstreamServiceError("Pagamento indisponível: ABACATEPAY_API_KEY não configurada.")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("[abacatepay] %s %s failed: %s", method, path, exc)
            raise UpstreamServiceError("Erro ao comunicar com o provedor de pagamento.") from exc
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400 or (isinstance(body, dict) and body.get("error")):
            logger.warning(
                "[abacatepay] %s %s status=%s error=%s",
                method, path, resp.status_code, (body or {}).get("error") if isinstance(body, dict) else None,
            )
            raise UpstreamServiceError("Erro ao criar cobrança no provedor de pagamento.")
        return body if isinstance(body, dict) else {"data": body}

    async def create_billing(
        self,
        *,
        methods: List[str],
        product_id: str,
        product_name: str,
        amount_cents: int,
        customer: Optional[Dict[str, Any]] = None,
        return_url: str,
        completion_url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a one-time billing; returns the provider ``data`` object (``id``, ``url``)."""
        payload: Dict[str, Any] = {
            "frequency": "ONE_TIME",
            "methods": methods,
            "products": [
                {
                    "externalId": product_id,
                    "name": product_name,
                    "quantity": 1,
                    "price": amount_cents,
                }
            ],
            "returnUrl": return_url,
            "completionUrl": completion_url,
        }
        if customer:
            payload["customer"] = customer
        if metadata:
            # Echoed back on webhooks; lets reconciliation join on the user id
            payload["metadata"] = metadata
        body = await self._request("POST", "/v1/billing/create", json=payload)
        data = body.get("data") or {}
        if not data.get("id") or not data.get("url"):
            logger.warning("[abacatepay] billing create returned no id/url")
            raise UpstreamServiceError("Erro ao criar cobrança no provedor de pagamento.")
        return data

    async def list_billings(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/v1/billing/list")
        data = body.get("data")
        return data if isinstance(data, list) else []

    async def simulate_pix_payment(self, pix_qr_code_id: str) -> Dict[str, Any]:
        body = await self._request(
            "POST",
            "/v1/pixQrCode/simulate-payment",
            params={"id": pix_qr_code_id},
            json={"metadata": {}},
        )
        return body.get("data") or {}
