"""
Thin async client for the Bold payment-link API.
Only the two calls LINA needs: list payment methods and create a checkout link.
"""
import logging
from typing import Optional

import httpx

from lina.core.errors import UpstreamError

logger = logging.getLogger(__name__)

PAYMENT_LINK_PATH = "/online/link/v1"
PAYMENT_METHODS_PATH = "/online/link/v1/payment_methods"

PAYMENT_PROVIDER_MESSAGE = (
    "No pudimos conectar con la pasarela de pagos. Intenta nuevamente en un momento."
)


class BoldClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"x-api-key {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            raise UpstreamError(PAYMENT_PROVIDER_MESSAGE, detail=f"Bold request failed: {e}") from e

        logger.info("[Bold] %s %s -> %s", method, path, r.status_code)
        if r.status_code >= 400:
            # Raw body goes to the logs only
            raise UpstreamError(
                PAYMENT_PROVIDER_MESSAGE,
                detail=f"Bold {r.status_code}: {r.text[:500] if r.text else 'NO_BODY'}",
                rate_limited=r.status_code == 429,
            )
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(PAYMENT_PROVIDER_MESSAGE, detail="Bold returned non-JSON body") from e

    async def list_payment_methods(self) -> dict:
        data = await self._request("GET", PAYMENT_METHODS_PATH)
        return data.get("payload", data) if isinstance(data, dict) else {"payment_methods": data}

    async def create_payment_link(
        self,
        amount: int,
        currency: str,
        reference: str,
        description: str,
        callback_url: Optional[str] = None,
        payer_email: Optional[str] = None,
    ) -> dict:
        """Create a closed-amount payment link. Returns {"payment_link", "url"}."""
        payload = {
            "amount_type": "CLOSE",
            "amount": {
                "currency": currency,
                "total_amount": amount,
                "tip_amount": 0,
            },
            "reference": reference,
            "description": description,
        }
        if callback_url:
            payload["callback_url"] = callback_url
        if payer_email:
            payload["payer_email"] = payer_email

        data = await self._request("POST", PAYMENT_LINK_PATH, json=payload)
        link = (data.get("payload") or {}) if isinstance(data, dict) else {}
        if not link.get("url"):
            raise UpstreamError(
                PAYMENT_PROVIDER_MESSAGE,
                detail=f"Bold payment link response missing url: {data}",
            )
        return link
