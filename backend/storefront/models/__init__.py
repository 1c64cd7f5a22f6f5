"""
SQLAlchemy Models for the JapanHaul storefront.

This package is organized by domain:
- base.py: Base class and mixins
- order.py: Orders and line items
- product.py: Scraped catalog products
- admin.py: Back-office users
- analytics.py: Back-office usage events

All models are re-exported from this module.
"""

# Base
from storefront.models.base import Base, UUIDMixin, TimestampMixin, VersionMixin

# Core domain models
from storefront.models.order import Order, OrderItem, ORDER_STATUSES, PAYMENT_STATUSES
from storefront.models.product import ScrapedProduct

# Back office
from storefront.models.admin import AdminUser, ADMIN_ROLES
from storefront.models.analytics import AnalyticsEvent, EVENT_TYPES


__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "VersionMixin",

    # Core domain
    "Order",
    "OrderItem",
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "ScrapedProduct",

    # Back office
    "AdminUser",
    "ADMIN_ROLES",
    "AnalyticsEvent",
    "EVENT_TYPES",
]
