# storefront/services/settlement.py
"""
Shipping Finalization & Capture
===============================
Once the physical shipping cost is known, captures the checkout hold for
the held amount plus shipping.

The order row is only touched after the processor confirms the capture, so
a failed capture leaves the order exactly as it was. Failures are surfaced
to the operator; nothing is retried here.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import InvalidTransitionError, PaymentNotCapturableError
from storefront.integrations.base import PaymentGateway
from storefront.models import Order
from storefront.services.orders import (
    ORDER_TRANSITIONS,
    OrderService,
    check_transition,
    validate_shipping_fee,
)
from storefront.services.pricing import to_minor_units

logger = logging.getLogger(__name__)


class SettlementService:
    """Captures and releases payment holds and records the outcome on orders."""

    def __init__(self, session: AsyncSession, gateway: PaymentGateway):
        self.session = session
        self.gateway = gateway
        self.orders = OrderService(session)

    async def capture_final_payment(
        self,
        payment_intent_id: str,
        shipping_fee=None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Capture ``hold amount + shipping fee`` for the order behind ``payment_intent_id``.

        ``shipping_fee`` defaults to the fee already stored on the order (0 if
        none). An explicit fee is recorded on the order once the capture
        succeeds.
        """
        order = await self.orders.get_order_by_payment_intent(payment_intent_id)
        return await self._capture(order, shipping_fee, expected_version)

    async def capture_order(
        self,
        order_id: str,
        shipping_fee=None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Same as capture_final_payment, for the order the operator selected by id."""
        order = await self.orders.get_order(order_id)
        return await self._capture(order, shipping_fee, expected_version)

    async def _capture(self, order: Order, shipping_fee, expected_version: Optional[int]) -> Order:
        payment_intent_id = order.payment_intent_id
        self.orders.check_version(order, expected_version)

        if order.payment_status != "authorized":
            raise InvalidTransitionError("payment_status", order.payment_status, "captured")
        if order.order_status == "cancelled":
            raise InvalidTransitionError(
                "order_status", order.order_status, "captured",
                message=f"Order {order.id} is cancelled, its payment cannot be captured",
            )

        if shipping_fee is None:
            fee = order.shipping_fee or 0
        else:
            fee = validate_shipping_fee(shipping_fee)

        intent = await self.gateway.retrieve_intent(payment_intent_id)
        if not intent.is_capturable:
            logger.warning(f"Capture refused for order {order.id}: intent {payment_intent_id} is {intent.status}")
            raise PaymentNotCapturableError(payment_intent_id, intent.status)

        capture_amount = intent.amount + to_minor_units(fee, order.currency)
        logger.info(
            f"Capturing {capture_amount} {order.currency.upper()} on {payment_intent_id} "
            f"(held {intent.amount} + shipping {fee}) for order {order.id}"
        )
        result = await self.gateway.capture(payment_intent_id, capture_amount)

        expected_total = to_minor_units(order.subtotal + fee, order.currency)
        if capture_amount != expected_total:
            logger.warning(
                f"Settlement mismatch on order {order.id}: captured {capture_amount} "
                f"but order total is {expected_total} (authorized {order.authorized_amount})"
            )

        try:
            if shipping_fee is not None and order.shipping_fee != fee:
                order.shipping_fee = fee
                order.total = order.subtotal + fee
            return await self.orders.apply_payment_status(order, "captured", captured_amount=result.captured_amount)
        except Exception as e:
            logger.error(f"Payment {payment_intent_id} captured but order {order.id} was not updated: {e}")
            raise

    async def cancel_order(self, order_id: str, expected_version: Optional[int] = None) -> Order:
        """
        Cancel an order and release its hold.

        Captured payments need a refund, which this service does not perform.
        """
        order = await self.orders.get_order(order_id)
        self.orders.check_version(order, expected_version)

        if not check_transition("order_status", ORDER_TRANSITIONS, order.order_status, "cancelled"):
            return order
        if order.payment_status == "captured":
            raise InvalidTransitionError(
                "order_status", order.order_status, "cancelled",
                message=f"Order {order.id} payment is already captured; refund it before cancelling",
            )

        if order.payment_status == "authorized":
            await self.gateway.cancel(order.payment_intent_id)
            await self.orders.apply_payment_status(order, "cancelled")

        return await self.orders.set_order_status(order.id, "cancelled")
