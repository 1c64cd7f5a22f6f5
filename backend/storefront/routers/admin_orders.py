"""
Admin Orders API Router.

Back-office order management: purchase history, shipping fee entry,
status transitions, final capture and cancellation, and the customer list.

Every mutation accepts the ``version`` the operator's screen was rendered
from; a concurrent edit in between is rejected with 409.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.integrations.base import PaymentGateway
from storefront.integrations.registry import get_payment_gateway
from storefront.models import AdminUser
from storefront.routers.dependencies import require_permission
from storefront.routers.orders import OrderResponse
from storefront.schemas import CamelModel
from storefront.services.orders import OrderService
from storefront.services.reporting import ReportingService
from storefront.services.settlement import SettlementService

logger = logging.getLogger(__name__)

router = APIRouter()

OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "authorized", "captured", "failed", "cancelled"]


class ShippingFeeRequest(CamelModel):
    shipping_fee: float
    expected_version: Optional[int] = None


class OrderStatusRequest(CamelModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    expected_version: Optional[int] = None


class PaymentStatusRequest(CamelModel):
    status: PaymentStatus
    captured_amount: Optional[int] = None
    expected_version: Optional[int] = None


class CaptureRequest(CamelModel):
    shipping_fee: Optional[float] = None
    expected_version: Optional[int] = None


class CancelRequest(CamelModel):
    expected_version: Optional[int] = None


class OrderListResponse(CamelModel):
    orders: List[OrderResponse]
    total: int


class CustomerResponse(CamelModel):
    name: str
    email: str
    phone: Optional[str] = None
    order_count: int
    total_spent: int
    last_order_date: Optional[str] = None


def _naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _whole(amount: Optional[float]):
    if amount is not None and math.isfinite(amount) and amount == int(amount):
        return int(amount)
    return amount


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(100, ge=1, le=500),
    admin: AdminUser = Depends(require_permission("orders.view")),
    db: AsyncSession = Depends(get_db),
):
    """Purchase history, newest first."""
    orders = await OrderService(db).list_orders(limit=limit)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )


@router.put("/orders/{order_id}/shipping", response_model=OrderResponse)
async def set_shipping_fee(
    order_id: str,
    request: ShippingFeeRequest,
    admin: AdminUser = Depends(require_permission("orders.edit")),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).set_shipping_fee(
        order_id,
        _whole(request.shipping_fee),
        expected_version=request.expected_version,
    )
    logger.info(f"Shipping fee for order {order_id} set by {admin.uid}")
    return OrderResponse.model_validate(order)


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def set_order_status(
    order_id: str,
    request: OrderStatusRequest,
    admin: AdminUser = Depends(require_permission("orders.edit")),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).set_order_status(
        order_id,
        request.status,
        tracking_number=request.tracking_number,
        shipping_carrier=request.shipping_carrier,
        shipped_at=_naive_utc(request.shipped_at),
        delivered_at=_naive_utc(request.delivered_at),
        expected_version=request.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.put("/orders/{order_id}/payment-status", response_model=OrderResponse)
async def set_payment_status(
    order_id: str,
    request: PaymentStatusRequest,
    admin: AdminUser = Depends(require_permission("orders.edit")),
    db: AsyncSession = Depends(get_db),
):
    """Manual payment status correction; the processor is not contacted."""
    order = await OrderService(db).set_payment_status(
        order_id,
        request.status,
        captured_amount=request.captured_amount,
        expected_version=request.expected_version,
    )
    logger.info(f"Payment status of order {order_id} set to {request.status} by {admin.uid}")
    return OrderResponse.model_validate(order)


@router.post("/orders/{order_id}/capture", response_model=OrderResponse)
async def capture_payment(
    order_id: str,
    request: CaptureRequest,
    admin: AdminUser = Depends(require_permission("orders.capture")),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Capture the checkout hold plus the shipping fee."""
    order = await SettlementService(db, gateway).capture_order(
        order_id,
        shipping_fee=_whole(request.shipping_fee),
        expected_version=request.expected_version,
    )
    logger.info(f"Order {order_id} captured by {admin.uid}")
    return OrderResponse.model_validate(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    request: Optional[CancelRequest] = None,
    admin: AdminUser = Depends(require_permission("orders.edit")),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Cancel the order and release its payment hold."""
    order = await SettlementService(db, gateway).cancel_order(
        order_id,
        expected_version=request.expected_version if request else None,
    )
    logger.info(f"Order {order_id} cancelled by {admin.uid}")
    return OrderResponse.model_validate(order)


@router.get("/customers", response_model=List[CustomerResponse])
async def list_customers(
    admin: AdminUser = Depends(require_permission("customers.view")),
    db: AsyncSession = Depends(get_db),
):
    """Customers derived from order history."""
    customers = await ReportingService(db).customers()
    return [CustomerResponse(**c) for c in customers]
