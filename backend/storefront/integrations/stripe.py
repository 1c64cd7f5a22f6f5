import logging
import uuid
from typing import Any, Dict, Optional

import httpx

from storefront.errors import ExternalServiceError
from storefront.integrations.base import (
    PaymentGateway,
    PaymentAuthorization,
    PaymentIntentInfo,
    CaptureResult,
)

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """
    Stripe PaymentIntents adapter using raw HTTP requests.

    Holds are created with ``capture_method=manual`` so the product amount is
    only authorized at checkout and captured later once shipping is known.
    Failures are surfaced as ExternalServiceError; nothing is retried here.
    """

    name = "stripe"

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        api_version: Optional[str] = None,
        timeout: float = 20.0,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        if self.api_version:
            headers["Stripe-Version"] = self.api_version
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                if method == "GET":
                    response = await client.get(url, headers=self._headers())
                else:
                    response = await client.post(url, data=data or {}, headers=self._headers(idempotency_key))
        except httpx.HTTPError as e:
            logger.error(f"Stripe request {method} {path} failed: {e}")
            raise ExternalServiceError("stripe", f"Payment processor unreachable: {e}") from e

        if response.status_code >= 400:
            error = {}
            try:
                error = response.json().get("error", {})
            except ValueError:
                pass
            message = error.get("message") or f"HTTP {response.status_code}"
            logger.error(f"Stripe API Error {response.status_code} on {method} {path}: {message}")
            raise ExternalServiceError("stripe", message, processor_code=error.get("code"))

        return response.json()

    @staticmethod
    def _intent_info(payload: Dict[str, Any]) -> PaymentIntentInfo:
        return PaymentIntentInfo(
            intent_id=payload["id"],
            status=payload["status"],
            amount=payload["amount"],
            currency=payload.get("currency", ""),
            amount_received=payload.get("amount_received") or 0,
        )

    async def create_authorization(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentAuthorization:
        data = {
            "amount": amount,
            "currency": currency,
            "capture_method": "manual",
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = value

        payload = await self._request(
            "POST",
            "/payment_intents",
            data=data,
            idempotency_key=idempotency_key or str(uuid.uuid4()),
        )
        logger.info(f"Stripe hold created: {payload['id']} for {amount} {currency.upper()}")
        return PaymentAuthorization(
            intent_id=payload["id"],
            client_secret=payload["client_secret"],
            amount=payload["amount"],
            currency=payload.get("currency", currency),
        )

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        payload = await self._request("GET", f"/payment_intents/{intent_id}")
        return self._intent_info(payload)

    async def capture(self, intent_id: str, amount: int, idempotency_key: Optional[str] = None) -> CaptureResult:
        payload = await self._request(
            "POST",
            f"/payment_intents/{intent_id}/capture",
            data={"amount_to_capture": amount},
            idempotency_key=idempotency_key or f"capture-{intent_id}-{amount}",
        )
        logger.info(f"Stripe capture succeeded: {intent_id} amount_received={payload.get('amount_received')}")
        return CaptureResult(
            intent_id=payload["id"],
            captured_amount=payload.get("amount_received") or 0,
            status=payload["status"],
            currency=payload.get("currency", ""),
        )

    async def cancel(self, intent_id: str) -> PaymentIntentInfo:
        payload = await self._request(
            "POST",
            f"/payment_intents/{intent_id}/cancel",
            idempotency_key=f"cancel-{intent_id}",
        )
        logger.info(f"Stripe hold released: {intent_id}")
        return self._intent_info(payload)
