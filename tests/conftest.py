"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

# Set testing environment BEFORE any other imports
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/1")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("NUVEMSHOP_CLIENT_ID", "4321")
os.environ.setdefault("NUVEMSHOP_CLIENT_SECRET", "nuvem-secret")
os.environ.setdefault("MELHOR_ENVIO_TOKEN", "me-test-token")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trocas.models import Base, ReturnRequest, Store, StoreSettings

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return fixed_clock


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(session) -> Store:
    """Store of owner-1 with default settings and a shipping address."""
    store = Store(
        owner_id="owner-1",
        name="Loja Teste",
        slug="loja-teste",
        api_key="nuvem-token",
        api_url="https://api.tiendanube.com/v1/123456",
        nuvemshop_store_id="123456",
        address_street="Rua das Flores",
        address_number="100",
        address_district="Centro",
        address_city="São Paulo",
        address_state="SP",
        address_postal_code="01310-100",
        phone="(11) 3333-4444",
        document="12.345.678/0001-90",
    )
    session.add(store)
    await session.flush()
    session.add(
        StoreSettings(
            store_id=store.id,
            return_window_days=7,
            allow_refund=True,
            allow_store_credit=True,
            store_credit_bonus=5,
            requires_reason=True,
            allow_partial_returns=True,
            credit_format="coupon",
        )
    )
    await session.commit()
    await session.refresh(store)
    return store


@pytest.fixture
def make_return_request(session, store):
    """Factory persisting a return request for the store fixture."""

    async def _make(**overrides) -> ReturnRequest:
        values = {
            "store_id": store.id,
            "order_id": "987",
            "order_number": "1001",
            "customer_name": "Maria Silva",
            "customer_email": "maria@example.com",
            "customer_postal_code": "04567-000",
            "customer_city": "São Paulo",
            "customer_state": "SP",
            "items": [
                {"id": "1", "product_id": "11", "name": "Camiseta", "price": 100.0,
                 "quantity": 1, "image": None, "reason": "Tamanho errado"},
                {"id": "2", "product_id": "12", "name": "Calça", "price": 50.0,
                 "quantity": 2, "image": None, "reason": "Cor diferente"},
            ],
            "total_value": Decimal("200.00"),
            "credit_value": Decimal("210.00"),
            "bonus_percent": 5,
            "resolution_type": "store_credit",
            "status": "pending",
        }
        values.update(overrides)
        return_request = ReturnRequest(**values)
        session.add(return_request)
        await session.commit()
        await session.refresh(return_request)
        return return_request

    return _make


@pytest.fixture
def sample_order():
    """Nuvemshop order payload, created 3 days before FIXED_NOW."""
    created_at = (FIXED_NOW - timedelta(days=3)).strftime("%Y-%m-%dT%H:%M:%S+0000")
    return {
        "id": 987,
        "number": 1001,
        "customer": {"id": 55, "name": "Maria Silva", "email": "Maria@Example.com"},
        "products": [
            {
                "id": 1,
                "product_id": 11,
                "name": "Camiseta",
                "price": "100.00",
                "quantity": 1,
                "image": {"src": "https://cdn.example.com/camiseta.jpg"},
                "sku": "CAM-01",
            },
            {
                "id": 2,
                "product_id": 12,
                "name": "Calça",
                "price": "50.00",
                "quantity": 2,
                "sku": "CAL-02",
            },
        ],
        "total": "200.00",
        "created_at": created_at,
        "status": "open",
    }


class FakeNuvemshopClient:
    """Stands in for NuvemshopClient in service tests."""

    def __init__(self, orders=None, store=None, error=None):
        self.orders = orders or []
        self.store = store or {}
        self.error = error
        self.queries: list[str] = []
        self.closed = False

    async def search_orders(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.orders

    async def list_orders(self, per_page=50):
        if self.error:
            raise self.error
        return self.orders

    async def get_store(self):
        if self.error:
            raise self.error
        return self.store

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_nuvemshop(sample_order):
    return FakeNuvemshopClient(orders=[sample_order])
