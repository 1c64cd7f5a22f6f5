"""
Simulated payment gateway for local development and demos.

Never contacts any external service. Every result is flagged ``demo=True``
so nothing downstream can mistake it for a real charge. Only selectable when
no Stripe key is configured and demo payments are allowed (see registry).
"""

import logging
import secrets
import time
from dataclasses import replace
from typing import Dict, Optional

from storefront.errors import ExternalServiceError
from storefront.integrations.base import (
    PaymentGateway,
    PaymentAuthorization,
    PaymentIntentInfo,
    CaptureResult,
    CAPTURABLE_STATUS,
)

logger = logging.getLogger(__name__)


class DemoPaymentGateway(PaymentGateway):
    """In-memory stand-in for the processor. State lives for the process lifetime."""

    name = "demo"
    is_demo = True

    def __init__(self):
        self._intents: Dict[str, PaymentIntentInfo] = {}

    def _get(self, intent_id: str) -> PaymentIntentInfo:
        intent = self._intents.get(intent_id)
        if intent is None:
            raise ExternalServiceError("demo", f"No such payment intent: {intent_id}")
        return intent

    async def create_authorization(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentAuthorization:
        intent_id = f"pi_demo_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        self._intents[intent_id] = PaymentIntentInfo(
            intent_id=intent_id,
            status=CAPTURABLE_STATUS,
            amount=amount,
            currency=currency,
            demo=True,
        )
        logger.warning(f"DEMO MODE: simulated hold {intent_id} for {amount} {currency.upper()}, no real payment")
        return PaymentAuthorization(
            intent_id=intent_id,
            client_secret=f"demo_{int(time.time() * 1000)}_{secrets.token_hex(6)}",
            amount=amount,
            currency=currency,
            demo=True,
        )

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        return replace(self._get(intent_id))

    async def capture(self, intent_id: str, amount: int, idempotency_key: Optional[str] = None) -> CaptureResult:
        intent = self._get(intent_id)
        if not intent.is_capturable:
            raise ExternalServiceError("demo", f"Payment intent {intent_id} status is {intent.status}, cannot capture")
        if amount <= 0:
            raise ExternalServiceError("demo", "Capture amount must be positive")
        if amount > intent.amount:
            # Processors refuse to capture more than was held
            raise ExternalServiceError(
                "demo",
                f"Capture of {amount} exceeds the held {intent.amount} on {intent_id}",
                processor_code="amount_too_large",
            )

        intent.status = "succeeded"
        intent.amount_received = amount
        logger.warning(f"DEMO MODE: simulated capture of {amount} {intent.currency.upper()} on {intent_id}")
        return CaptureResult(
            intent_id=intent_id,
            captured_amount=amount,
            status=intent.status,
            currency=intent.currency,
            demo=True,
        )

    async def cancel(self, intent_id: str) -> PaymentIntentInfo:
        intent = self._get(intent_id)
        if intent.status == "succeeded":
            raise ExternalServiceError("demo", f"Payment intent {intent_id} already captured, cannot cancel")
        intent.status = "canceled"
        logger.warning(f"DEMO MODE: simulated release of {intent_id}")
        return replace(intent)
