"""
Order models - checkout transactions, line items and their settlement state.
"""

from datetime import datetime
from typing import Optional, List

from sqlalchemy import String, Text, Boolean, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, UUIDMixin, TimestampMixin, VersionMixin


ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "authorized", "captured", "failed", "cancelled")


class Order(Base, UUIDMixin, TimestampMixin, VersionMixin):
    """
    One checkout transaction.

    Amounts are whole yen. ``subtotal`` is the marked-up sum the customer was
    shown, ``original_subtotal`` the scraped cost, and ``total`` becomes
    ``subtotal + shipping_fee`` once an operator sets the fee.
    """
    __tablename__ = "orders"

    # Customer contact
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Delivery
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)

    # Amounts
    original_subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_fee: Mapped[Optional[int]] = mapped_column(Integer)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="jpy")

    # Payment
    payment_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), default="authorized")  # see PAYMENT_STATUSES
    authorized_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    captured_amount: Mapped[Optional[int]] = mapped_column(Integer)

    # Fulfillment
    order_status: Mapped[str] = mapped_column(String(20), default="confirmed")  # see ORDER_STATUSES
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_carrier: Mapped[Optional[str]] = mapped_column(String(100))
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    newsletter_opt_in: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_order_created", "created_at"),
        Index("idx_order_email", "email"),
    )

    @property
    def items_cost(self) -> int:
        """Sum of the scraped source prices for this order's items."""
        return sum(item.original_price * item.quantity for item in self.items)


class OrderItem(Base, UUIDMixin):
    """A product line within an order. Immutable once the order is placed."""
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    source_url: Mapped[Optional[str]] = mapped_column(Text)

    original_price: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        Index("idx_orderitem_order", "order_id"),
        Index("idx_orderitem_product", "product_id"),
    )
