import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, func, case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product, ProductFilter, Cart
from storefront.infrastructure.db_schema import products_tbl, carts_tbl, orders_tbl, outbox_events_tbl
from storefront.application.interfaces import ProductRepository, CartRepository, OrderRepository, OutboxRepository


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_many(self, product_ids: List[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id.in_(set(product_ids)))
        )
        return {row.id: self._to_domain(row) for row in result.fetchall()}

    async def list(self, filters: Optional[ProductFilter] = None, offset: int = 0, limit: int = 20) -> List[Product]:
        filters = filters or ProductFilter()
        stmt = self._filtered(select(products_tbl), filters)
        result = await self._session.execute(
            stmt.order_by(*self._ordering(filters.sort))
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def count(self, filters: Optional[ProductFilter] = None) -> int:
        stmt = self._filtered(select(func.count()).select_from(products_tbl), filters or ProductFilter())
        result = await self._session.execute(stmt)
        return result.scalar_one()

    def _filtered(self, stmt, filters: ProductFilter):
        if filters.active_only:
            stmt = stmt.where(products_tbl.c.is_active.is_(True))
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(or_(
                products_tbl.c.name.ilike(pattern),
                products_tbl.c.description.ilike(pattern)
            ))
        if filters.min_price is not None:
            stmt = stmt.where(products_tbl.c.price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(products_tbl.c.price <= filters.max_price)
        if filters.in_stock:
            stmt = stmt.where(products_tbl.c.stock > 0)
        if filters.featured:
            stmt = stmt.where(products_tbl.c.featured.is_(True))
        return stmt

    def _ordering(self, sort: Optional[str]):
        # По умолчанию: рекомендуемые, затем новые
        if not sort:
            return products_tbl.c.featured.desc(), products_tbl.c.created_at.desc(), products_tbl.c.id
        column = products_tbl.c[sort.lstrip("-")]
        return (column.desc() if sort.startswith("-") else column.asc()), products_tbl.c.id

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            image=product.image,
            featured=product.featured,
            is_active=product.is_active,
            created_at=product.created_at,
            updated_at=product.updated_at
        )
        await self._session.execute(stmt)

    async def update(self, product: Product) -> None:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product.id)
            .values(
                name=product.name,
                description=product.description,
                price=product.price,
                stock=product.stock,
                image=product.image,
                featured=product.featured,
                is_active=product.is_active,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        # Проверка и списание одним UPDATE, без read-then-write
        stmt = (
            update(products_tbl)
            .where(
                products_tbl.c.id == product_id,
                products_tbl.c.stock >= quantity
            )
            .values(
                stock=products_tbl.c.stock - quantity,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(
                stock=products_tbl.c.stock + quantity,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> Product:
        """Трансформация DB → Domain"""
        return Product(
            id=row.id,
            name=row.name,
            description=row.description,
            price=row.price,
            stock=row.stock,
            image=row.image,
            featured=row.featured,
            is_active=row.is_active,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyCartRepository(CartRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        result = await self._session.execute(
            select(carts_tbl).where(carts_tbl.c.user_id == user_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, cart: Cart) -> None:
        stmt = insert(carts_tbl).values(
            id=cart.id,
            user_id=cart.user_id,
            items=[item.model_dump(mode="json") for item in cart.items],
            created_at=cart.created_at,
            updated_at=cart.updated_at
        )
        await self._session.execute(stmt)

    async def save(self, cart: Cart) -> None:
        stmt = (
            update(carts_tbl)
            .where(carts_tbl.c.id == cart.id)
            .values(
                items=[item.model_dump(mode="json") for item in cart.items],
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    async def clear(self, user_id: str) -> None:
        stmt = (
            update(carts_tbl)
            .where(carts_tbl.c.user_id == user_id)
            .values(
                items=[],
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Cart:
        return Cart(
            id=row.id,
            user_id=row.user_id,
            items=row.items or [],
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def exists_order_number(self, order_number: str) -> bool:
        result = await self._session.execute(
            select(orders_tbl.c.id).where(orders_tbl.c.order_number == order_number)
        )
        return result.fetchone() is not None

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            items=[item.model_dump(mode="json") for item in order.items],
            shipping_address=order.shipping_address.model_dump(mode="json"),
            billing_address=order.billing_address.model_dump(mode="json"),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            order_status=order.order_status,
            subtotal=order.subtotal,
            tax=order.tax,
            shipping=order.shipping,
            discount=order.discount,
            total=order.total,
            currency=order.currency,
            notes=order.notes,
            status_history=[entry.model_dump(mode="json") for entry in order.status_history],
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)

    async def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        # Позиции и суммы после создания не обновляются
        stmt = update(orders_tbl).where(orders_tbl.c.id == order.id)
        if expected_status is not None:
            stmt = stmt.where(orders_tbl.c.order_status == expected_status)
        stmt = stmt.values(
            order_status=order.order_status,
            payment_status=order.payment_status,
            tracking_number=order.tracking_number,
            shipping_carrier=order.shipping_carrier,
            estimated_delivery=order.estimated_delivery,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancel_reason=order.cancel_reason,
            stock_restored_at=order.stock_restored_at,
            refund_amount=order.refund_amount,
            refund_reason=order.refund_reason,
            status_history=[entry.model_dump(mode="json") for entry in order.status_history],
            updated_at=order.updated_at
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_by_user(self, user_id: str, offset: int = 0, limit: int = 10) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc(), orders_tbl.c.id)
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def count_by_user(self, user_id: str) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(orders_tbl).where(orders_tbl.c.user_id == user_id)
        )
        return result.scalar_one()

    async def list(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        offset: int = 0,
        limit: int = 10
    ) -> List[Order]:
        stmt = self._filtered(select(orders_tbl), status, payment_status)
        result = await self._session.execute(
            stmt.order_by(orders_tbl.c.created_at.desc(), orders_tbl.c.id)
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def count(self, status: Optional[OrderStatus] = None, payment_status: Optional[PaymentStatus] = None) -> int:
        stmt = self._filtered(select(func.count()).select_from(orders_tbl), status, payment_status)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    def _filtered(self, stmt, status, payment_status):
        if status is not None:
            stmt = stmt.where(orders_tbl.c.order_status == status)
        if payment_status is not None:
            stmt = stmt.where(orders_tbl.c.payment_status == payment_status)
        return stmt

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            order_number=row.order_number,
            user_id=row.user_id,
            items=row.items,
            shipping_address=row.shipping_address,
            billing_address=row.billing_address,
            payment_method=row.payment_method,
            payment_status=row.payment_status,
            order_status=OrderStatus(row.order_status),
            subtotal=row.subtotal,
            tax=row.tax,
            shipping=row.shipping,
            discount=row.discount,
            total=row.total,
            currency=row.currency,
            notes=row.notes,
            tracking_number=row.tracking_number,
            shipping_carrier=row.shipping_carrier,
            estimated_delivery=row.estimated_delivery,
            delivered_at=row.delivered_at,
            cancelled_at=row.cancelled_at,
            cancel_reason=row.cancel_reason,
            stock_restored_at=row.stock_restored_at,
            refund_amount=row.refund_amount,
            refund_reason=row.refund_reason,
            status_history=row.status_history or [],
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,  # SQLAlchemy JSON column сериализует автоматически
            order_id=order_id,
            status="pending",
            attempts=0,
            created_at=datetime.now(timezone.utc)
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "order_id": row.order_id,
                "attempts": row.attempts
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published")
        )
        await self._session.execute(stmt)

    async def mark_attempt_failed(self, event_id: str, max_attempts: int) -> None:
        attempts = outbox_events_tbl.c.attempts + 1
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(
                attempts=attempts,
                status=case((attempts >= max_attempts, "failed"), else_="pending")
            )
        )
        await self._session.execute(stmt)
