# storefront/services/authorization.py
"""
Payment Authorization
=====================
Places a hold with the payment processor at checkout, before the shipping
cost is known.

Which subtotal gets held is an explicit policy (AUTHORIZATION_POLICY):
- ``original_subtotal``: the pre-markup cost sum (historical behaviour)
- ``marked_up_subtotal``: the subtotal the customer is shown
The same policy decides ``Order.authorized_amount`` at order creation.
"""

import logging
from typing import Dict, Iterable, Optional

from storefront.config import get_settings
from storefront.errors import ValidationError
from storefront.integrations.base import PaymentGateway, PaymentAuthorization
from storefront.services.pricing import (
    PricedItem,
    original_subtotal,
    subtotal_with_markup,
    to_minor_units,
    validate_priced_items,
)

logger = logging.getLogger(__name__)

AUTHORIZATION_POLICIES = ("original_subtotal", "marked_up_subtotal")


def authorization_amount(items: Iterable[PricedItem], policy: str) -> int:
    """Amount (whole currency units) to hold for a cart under ``policy``."""
    items = list(items)
    if policy == "original_subtotal":
        return original_subtotal(items)
    if policy == "marked_up_subtotal":
        return subtotal_with_markup(items)
    raise ValidationError(f"Unknown authorization policy: {policy}", field="policy")


class AuthorizationService:
    """
    Requests manual-capture holds. Processor failures propagate as
    ExternalServiceError; there is no retry.
    """

    def __init__(self, gateway: PaymentGateway, policy: Optional[str] = None, currency: Optional[str] = None):
        settings = get_settings()
        self.gateway = gateway
        self.policy = policy or settings.AUTHORIZATION_POLICY
        self.currency = (currency or settings.CURRENCY).lower()

    async def authorize(
        self,
        amount: int,
        currency: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        """Hold ``amount`` (whole currency units) on the customer's payment method."""
        currency = (currency or self.currency).lower()
        if amount is None or amount <= 0:
            raise ValidationError("Invalid amount", field="amount")

        authorization = await self.gateway.create_authorization(
            amount=to_minor_units(amount, currency),
            currency=currency,
            metadata=metadata,
        )
        logger.info(
            f"Authorized {amount} {currency.upper()} on {authorization.intent_id}"
            f"{' (demo)' if authorization.demo else ''}"
        )
        return authorization

    async def authorize_checkout(
        self,
        items: Iterable[PricedItem],
        currency: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        """Price the cart server-side and hold the policy's subtotal."""
        items = list(items)
        if not items:
            raise ValidationError("No items in cart", field="items")
        # Same item checks as order creation
        validate_priced_items(items)

        amount = authorization_amount(items, self.policy)
        meta = {"authorization_policy": self.policy, "item_count": str(len(items))}
        meta.update(metadata or {})
        return await self.authorize(amount, currency=currency, metadata=meta)
