"""
Checkout & Orders API Router.

Public endpoints used by the storefront checkout flow:
payment authorization, order creation and the confirmation page.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.errors import ValidationError
from storefront.integrations.base import PaymentGateway
from storefront.integrations.registry import get_payment_gateway
from storefront.schemas import CamelModel
from storefront.services.authorization import AuthorizationService
from storefront.services.orders import CustomerInfo, DeliveryInfo, LineItemInput, OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


class CartItemRequest(CamelModel):
    """A cart line. ``price`` is the scraped (pre-markup) price."""
    product_id: str
    title: str
    price: float = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(ge=1)
    image_url: Optional[str] = None
    source_url: Optional[str] = None

    def to_line_item(self) -> LineItemInput:
        price = int(self.price) if self.price == int(self.price) else self.price
        return LineItemInput(
            product_id=self.product_id,
            title=self.title,
            original_price=price,
            quantity=self.quantity,
            image_url=self.image_url,
            source_url=self.source_url,
        )


class PaymentIntentRequest(CamelModel):
    """Either a cart (preferred) or a bare amount to authorize."""
    items: Optional[List[CartItemRequest]] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = {}


class PaymentIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    amount: int
    currency: str
    demo: bool = False


class CreateOrderRequest(CamelModel):
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: str
    city: str
    state: str
    zip_code: str
    items: List[CartItemRequest]
    payment_intent_id: str
    newsletter_opt_in: bool = False


class OrderItemResponse(CamelModel):
    product_id: str
    title: str
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    original_price: int
    price: int
    quantity: int


class OrderResponse(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: str
    city: str
    state: str
    zip_code: str
    items: List[OrderItemResponse]
    original_subtotal: int
    subtotal: int
    shipping_fee: Optional[int] = None
    total: int
    currency: str
    payment_intent_id: str
    payment_status: str
    authorized_amount: int
    captured_amount: Optional[int] = None
    order_status: str
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    newsletter_opt_in: bool
    version: int
    created_at: datetime
    updated_at: datetime


class CreateOrderResponse(CamelModel):
    success: bool = True
    order_id: str
    order: OrderResponse


@router.post("/checkout/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Place a manual-capture hold for the cart. Shipping is captured later,
    once the order has shipped.
    """
    service = AuthorizationService(gateway)
    if request.items is not None:
        authorization = await service.authorize_checkout(
            [item.to_line_item() for item in request.items],
            currency=request.currency,
            metadata=request.metadata,
        )
    elif request.amount is not None:
        authorization = await service.authorize(request.amount, currency=request.currency, metadata=request.metadata)
    else:
        raise ValidationError("Invalid amount", field="amount")

    return PaymentIntentResponse(
        client_secret=authorization.client_secret,
        payment_intent_id=authorization.intent_id,
        amount=authorization.amount,
        currency=authorization.currency,
        demo=authorization.demo,
    )


@router.post("/orders", response_model=CreateOrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    db: AsyncSession = Depends(get_db),
):
    """Record the order after the customer's payment hold succeeded."""
    order = await OrderService(db).create_order(
        customer=CustomerInfo(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            phone=request.phone,
        ),
        delivery=DeliveryInfo(
            address=request.address,
            city=request.city,
            state=request.state,
            zip_code=request.zip_code,
        ),
        items=[item.to_line_item() for item in request.items],
        payment_intent_id=request.payment_intent_id,
        newsletter_opt_in=request.newsletter_opt_in,
    )
    return CreateOrderResponse(order_id=order.id, order=OrderResponse.model_validate(order))


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Order confirmation view."""
    order = await OrderService(db).get_order(order_id)
    return OrderResponse.model_validate(order)
