from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application import interfaces
from storefront.infrastructure.repositories import (
    SQLAlchemyProductRepository,
    SQLAlchemyCartRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository
)


class UnitOfWork:
    """Открывает транзакцию на одну операцию.

    Все репозитории внутри блока работают в одной сессии: списание остатков,
    заказ, корзина и outbox фиксируются вместе или не фиксируются вовсе.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator["SQLAlchemyUnitOfWork"]:
        async with self._session_factory() as session:
            try:
                yield SQLAlchemyUnitOfWork(session)
                # Без явного commit изменения откатываются
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class SQLAlchemyUnitOfWork(interfaces.UnitOfWork):
    def __init__(self, session: AsyncSession):
        self._session = session
        self._products = SQLAlchemyProductRepository(session)
        self._carts = SQLAlchemyCartRepository(session)
        self._orders = SQLAlchemyOrderRepository(session)
        self._outbox = SQLAlchemyOutboxRepository(session)

    @property
    def products(self) -> SQLAlchemyProductRepository:
        return self._products

    @property
    def carts(self) -> SQLAlchemyCartRepository:
        return self._carts

    @property
    def orders(self) -> SQLAlchemyOrderRepository:
        return self._orders

    @property
    def outbox(self) -> SQLAlchemyOutboxRepository:
        return self._outbox

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
