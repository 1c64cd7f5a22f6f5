# storefront/services/orders.py
"""
Order Service
=============
Creates orders at checkout completion and applies the operator-side
mutations that follow: shipping fee assignment and status transitions.

Both status fields are finite-state machines; illegal moves raise
InvalidTransitionError instead of being written. Every mutation can carry
the version the caller read, and the ``version`` column guards the UPDATE
itself, so concurrent admin edits fail with StaleOrderError instead of
silently overwriting each other.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Sequence

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from storefront.config import get_settings
from storefront.errors import (
    DuplicateOrderError,
    InvalidTransitionError,
    NotFoundError,
    StaleOrderError,
    ValidationError,
)
from storefront.models import Order, OrderItem
from storefront.services.authorization import authorization_amount
from storefront.services.pricing import (
    display_price,
    original_subtotal,
    subtotal_with_markup,
    validate_priced_items,
)

logger = logging.getLogger(__name__)


ORDER_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"authorized", "failed", "cancelled"}),
    "authorized": frozenset({"captured", "failed", "cancelled"}),
    "captured": frozenset(),
    "failed": frozenset(),
    "cancelled": frozenset(),
}


def check_transition(machine: str, transitions: Dict[str, FrozenSet[str]], current: str, requested: str) -> bool:
    """
    Validate a status change.

    Returns False when ``requested`` equals ``current`` (nothing to do),
    True when the move is legal, and raises otherwise.
    """
    if requested not in transitions:
        raise ValidationError(f"Invalid {machine}: {requested}", field=machine)
    if requested == current:
        return False
    if requested not in transitions.get(current, frozenset()):
        raise InvalidTransitionError(machine, current, requested)
    return True


@dataclass
class CustomerInfo:
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


@dataclass
class DeliveryInfo:
    address: str
    city: str
    state: str
    zip_code: str


@dataclass
class LineItemInput:
    """A cart line as submitted at checkout. ``original_price`` is the scraped price."""
    product_id: str
    title: str
    original_price: int
    quantity: int
    image_url: Optional[str] = None
    source_url: Optional[str] = None


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing required field: {field}", field=field)
    return str(value).strip()


def _validate_items(items: Sequence[LineItemInput]):
    if not items:
        raise ValidationError("No items in order", field="items")
    for item in items:
        _require(item.product_id, "product_id")
        _require(item.title, "title")
    validate_priced_items(items)


def validate_shipping_fee(fee) -> int:
    """Shipping fees are finite, non-negative, whole yen."""
    if isinstance(fee, bool) or not isinstance(fee, (int, float)):
        raise ValidationError("Invalid shipping fee", field="shipping_fee")
    if not math.isfinite(fee) or fee < 0:
        raise ValidationError("Invalid shipping fee", field="shipping_fee")
    if fee != int(fee):
        raise ValidationError("Shipping fee must be a whole amount", field="shipping_fee")
    return int(fee)


class OrderService:
    """
    Order creation and transitions.

    Methods flush but never commit; the request-scoped session commits or
    rolls back the whole operation.
    """

    def __init__(self, session: AsyncSession, authorization_policy: Optional[str] = None):
        settings = get_settings()
        self.session = session
        self.authorization_policy = authorization_policy or settings.AUTHORIZATION_POLICY
        self.currency = settings.CURRENCY

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        order = await self.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        """An intent holds at most one order (unique column)."""
        result = await self.session.execute(
            select(Order).where(Order.payment_intent_id == payment_intent_id)
        )
        return result.scalar_one_or_none()

    async def get_order_by_payment_intent(self, payment_intent_id: str) -> Order:
        order = await self.find_by_payment_intent(payment_intent_id)
        if order is None:
            raise NotFoundError("Order", payment_intent_id)
        return order

    async def list_orders(self, limit: int = 100) -> List[Order]:
        """Newest orders first."""
        result = await self.session.execute(
            select(Order).order_by(desc(Order.created_at)).limit(limit)
        )
        return list(result.scalars().all())

    async def list_realized_between(self, start: datetime, end: datetime) -> List[Order]:
        """Captured and delivered orders created in ``[start, end]``, unbounded."""
        result = await self.session.execute(
            select(Order)
            .where(
                Order.created_at >= start,
                Order.created_at <= end,
                Order.payment_status == "captured",
                Order.order_status == "delivered",
            )
            .order_by(desc(Order.created_at))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(
        self,
        customer: CustomerInfo,
        delivery: DeliveryInfo,
        items: Sequence[LineItemInput],
        payment_intent_id: str,
        newsletter_opt_in: bool = False,
    ) -> Order:
        """
        Record a checkout whose payment hold already exists.

        Prices are recomputed from the scraped prices; client-side display
        prices are never trusted.
        """
        if payment_intent_id and payment_intent_id.strip():
            existing = await self.find_by_payment_intent(payment_intent_id.strip())
            if existing is not None:
                logger.warning(f"Repeated checkout for {payment_intent_id}: order {existing.id} already recorded")
                raise DuplicateOrderError(payment_intent_id.strip(), existing.id)

        try:
            order = self._build_order(customer, delivery, items, payment_intent_id, newsletter_opt_in)
            self.session.add(order)
            await self.session.flush()
        except IntegrityError as e:
            # A concurrent submit for the same hold was flushed first
            logger.warning(f"Repeated checkout for {payment_intent_id} rejected by unique index")
            raise DuplicateOrderError(payment_intent_id.strip()) from e
        except Exception as e:
            if payment_intent_id:
                # The hold exists at the processor but no order references it
                logger.error(f"Order creation failed with authorized hold {payment_intent_id} left unrecorded: {e}")
            raise

        logger.info(
            f"Order created: {order.id} subtotal={order.subtotal} "
            f"authorized={order.authorized_amount} intent={order.payment_intent_id}"
        )
        return order

    def _build_order(
        self,
        customer: CustomerInfo,
        delivery: DeliveryInfo,
        items: Sequence[LineItemInput],
        payment_intent_id: str,
        newsletter_opt_in: bool,
    ) -> Order:
        email = _require(customer.email, "email")
        if "@" not in email:
            raise ValidationError("Invalid email address", field="email")
        first_name = _require(customer.first_name, "first_name")
        last_name = _require(customer.last_name, "last_name")
        address = _require(delivery.address, "address")
        city = _require(delivery.city, "city")
        state = _require(delivery.state, "state")
        zip_code = _require(delivery.zip_code, "zip_code")
        _validate_items(items)
        intent_id = _require(payment_intent_id, "payment_intent_id")

        subtotal = subtotal_with_markup(items)
        now = datetime.utcnow()

        return Order(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=(customer.phone or "").strip() or None,
            address=address,
            city=city,
            state=state,
            zip_code=zip_code,
            original_subtotal=original_subtotal(items),
            subtotal=subtotal,
            total=subtotal,
            currency=self.currency,
            payment_intent_id=intent_id,
            payment_status="authorized",
            authorized_amount=authorization_amount(items, self.authorization_policy),
            order_status="confirmed",
            newsletter_opt_in=bool(newsletter_opt_in),
            created_at=now,
            updated_at=now,
            items=[
                OrderItem(
                    position=position,
                    product_id=item.product_id,
                    title=item.title,
                    image_url=item.image_url,
                    source_url=item.source_url,
                    original_price=int(item.original_price),
                    price=display_price(item.original_price),
                    quantity=item.quantity,
                )
                for position, item in enumerate(items)
            ],
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def check_version(self, order: Order, expected_version: Optional[int]):
        if expected_version is not None and expected_version != order.version:
            raise StaleOrderError(order.id, expected_version, order.version)

    async def _flush(self, order: Order):
        order.updated_at = datetime.utcnow()
        try:
            await self.session.flush()
        except StaleDataError as e:
            raise StaleOrderError(order.id) from e

    async def set_shipping_fee(self, order_id: str, fee, expected_version: Optional[int] = None) -> Order:
        """Set the shipping fee and recompute ``total = subtotal + fee``."""
        fee = validate_shipping_fee(fee)
        order = await self.get_order(order_id)
        self.check_version(order, expected_version)

        if order.payment_status in ("captured", "failed", "cancelled") or order.order_status == "cancelled":
            raise InvalidTransitionError(
                "shipping_fee",
                f"{order.order_status}/{order.payment_status}",
                str(fee),
                message=f"Shipping fee of order {order.id} can no longer change "
                        f"(order {order.order_status}, payment {order.payment_status})",
            )

        order.shipping_fee = fee
        order.total = order.subtotal + fee
        await self._flush(order)

        logger.info(f"Order {order.id} shipping fee set to {fee}, total {order.total}")
        return order

    async def set_order_status(
        self,
        order_id: str,
        status: str,
        tracking_number: Optional[str] = None,
        shipping_carrier: Optional[str] = None,
        shipped_at: Optional[datetime] = None,
        delivered_at: Optional[datetime] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        order = await self.get_order(order_id)
        self.check_version(order, expected_version)

        changed = check_transition("order_status", ORDER_TRANSITIONS, order.order_status, status)

        if tracking_number:
            order.tracking_number = tracking_number
            changed = True
        if shipping_carrier:
            order.shipping_carrier = shipping_carrier
            changed = True

        if not changed:
            return order

        previous = order.order_status
        order.order_status = status
        if status == "shipped" and order.shipped_at is None:
            order.shipped_at = shipped_at or datetime.utcnow()
        if status == "delivered" and order.delivered_at is None:
            order.delivered_at = delivered_at or datetime.utcnow()

        await self._flush(order)
        logger.info(f"Order {order.id} status {previous} -> {status}")
        return order

    async def set_payment_status(
        self,
        order_id: str,
        status: str,
        captured_amount: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        order = await self.get_order(order_id)
        self.check_version(order, expected_version)
        return await self.apply_payment_status(order, status, captured_amount)

    async def apply_payment_status(self, order: Order, status: str, captured_amount: Optional[int] = None) -> Order:
        """Apply a payment transition to an already-loaded order."""
        if not check_transition("payment_status", PAYMENT_TRANSITIONS, order.payment_status, status):
            return order

        previous = order.payment_status
        order.payment_status = status
        if captured_amount is not None:
            order.captured_amount = captured_amount

        await self._flush(order)
        logger.info(f"Order {order.id} payment {previous} -> {status}")
        return order

