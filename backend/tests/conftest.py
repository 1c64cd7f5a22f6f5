"""
Shared fixtures: an in-memory SQLite database per test, a demo payment
gateway, and an ASGI client wired to both.
"""

import os
import uuid

# Settings are read at import time by storefront.database / storefront.main
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ADMIN_SETUP_SECRET", "test-setup-secret")

from datetime import datetime

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.models import Base, Order, OrderItem


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def demo_gateway():
    from storefront.integrations.demo import DemoPaymentGateway
    return DemoPaymentGateway()


@pytest_asyncio.fixture
async def client(session_factory, demo_gateway):
    """API client sharing the test database and demo gateway."""
    from storefront.database import get_db
    from storefront.integrations.registry import get_payment_gateway
    from storefront.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: demo_gateway

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_admin(session_factory):
    """Create an active admin with ``role`` and return auth headers for it."""
    from storefront.auth_middleware import create_access_token
    from storefront.services.admin_users import AdminUserService

    async def _make(role: str = "super_admin", uid: str = None):
        uid = uid or f"{role}-uid"
        async with session_factory() as session:
            await AdminUserService(session).upsert(uid=uid, email=f"{uid}@example.com", name=role, role=role)
            await session.commit()
        token = create_access_token(uid, email=f"{uid}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return _make


def build_order(
    subtotal_items,
    payment_status: str = "captured",
    order_status: str = "delivered",
    created_at: datetime = None,
    shipping_fee: int = 0,
    email: str = "buyer@example.com",
    payment_intent_id: str = None,
) -> Order:
    """
    In-memory order for aggregation tests. ``subtotal_items`` is a list of
    (original_price, price, quantity) tuples.
    """
    items = [
        OrderItem(
            position=i,
            product_id=f"p_{i}",
            title=f"Item {i}",
            original_price=original,
            price=price,
            quantity=qty,
        )
        for i, (original, price, qty) in enumerate(subtotal_items)
    ]
    subtotal = sum(price * qty for _, price, qty in subtotal_items)
    return Order(
        email=email,
        first_name="Taro",
        last_name="Yamada",
        address="1-1 Chiyoda",
        city="Tokyo",
        state="Tokyo",
        zip_code="100-0001",
        original_subtotal=sum(original * qty for original, _, qty in subtotal_items),
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        total=subtotal + shipping_fee,
        currency="jpy",
        payment_intent_id=payment_intent_id or f"pi_test_{uuid.uuid4().hex[:12]}",
        payment_status=payment_status,
        authorized_amount=subtotal,
        order_status=order_status,
        created_at=created_at or datetime(2024, 1, 15, 12, 0),
        items=items,
    )


@pytest.fixture
def order_factory():
    return build_order
