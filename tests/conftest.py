"""Pytest fixtures for storefront tests."""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.domain.models import Address, PaymentMethod, Product, utcnow
from storefront.application.create_order import CreateOrderDTO, CreateOrderUseCase, OrderLineDTO
from storefront.infrastructure.db_schema import metadata
from storefront.infrastructure.unit_of_work import UnitOfWork


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def make_product(uow):
    """Create a product directly in the catalog."""

    async def create(
        name="Камера", price="10.00", stock=5, is_active=True, image=None, featured=False, description=None
    ):
        now = utcnow()
        product = Product(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            price=Decimal(price),
            stock=stock,
            image=image,
            featured=featured,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        async with uow() as u:
            await u.products.create(product)
            await u.commit()
        return product

    return create


@pytest.fixture
def fetch_product(uow):
    async def fetch(product_id):
        async with uow() as u:
            return await u.products.get_by_id(product_id)

    return fetch


@pytest.fixture
def fetch_order(uow):
    async def fetch(order_id):
        async with uow() as u:
            return await u.orders.get_by_id(order_id)

    return fetch


@pytest.fixture
def address():
    return Address(
        first_name="Иван",
        last_name="Петров",
        street="1 Main St",
        city="Springfield",
        state="IL",
        zip_code="62701",
    )


@pytest.fixture
def order_dto(address):
    """Build a CreateOrderDTO; total defaults to the correct value for the given prices."""

    def build(lines, user_id="user-1", tax="0", shipping="0", discount="0", total=None, subtotal="0"):
        expected = sum(Decimal(str(price)) * quantity for _, quantity, price in lines)
        if total is None:
            total = expected + Decimal(tax) + Decimal(shipping) - Decimal(discount)
        return CreateOrderDTO(
            user_id=user_id,
            items=[OrderLineDTO(product_id=product_id, quantity=quantity) for product_id, quantity, _ in lines],
            shipping_address=address,
            payment_method=PaymentMethod.CARD,
            subtotal=Decimal(subtotal),
            tax=Decimal(tax),
            shipping=Decimal(shipping),
            discount=Decimal(discount),
            total=Decimal(str(total)),
        )

    return build


@pytest.fixture
def place_order(uow, order_dto):
    async def place(lines, user_id="user-1"):
        return await CreateOrderUseCase(uow)(order_dto(lines, user_id=user_id))

    return place


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app with the test database."""
    from storefront.database import get_db
    from storefront.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
