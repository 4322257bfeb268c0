import logging
from decimal import Decimal
from typing import Callable, Optional
from pydantic import BaseModel, Field
import uuid

from storefront.domain.models import (
    Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod, Address, StatusHistoryEntry,
    TOTAL_TOLERANCE, to_money, utcnow
)
from storefront.domain.exceptions import (
    ProductUnavailableError, InsufficientStockError, OrderTotalMismatchError, OrderNumberGenerationError
)
from storefront.domain.order_number import generate_order_number


logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


class OrderLineDTO(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class CreateOrderDTO(BaseModel):
    user_id: str
    items: list[OrderLineDTO]
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: PaymentMethod
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal = Decimal("0")
    total: Decimal
    currency: str = "USD"
    notes: Optional[str] = None


def merge_lines(lines: list[OrderLineDTO]) -> dict[str, int]:
    """Складывает количества повторяющихся товаров, сохраняя порядок"""
    merged: dict[str, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


class CreateOrderUseCase:
    """Оформление заказа: проверка, списание остатков, заказ и очистка корзины одной транзакцией"""

    def __init__(self, unit_of_work, order_number_factory: Callable[[], str] = generate_order_number):
        self._uow = unit_of_work
        self._order_number_factory = order_number_factory

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа для пользователя {order_data.user_id}, позиций: {len(order_data.items)}")
        requested = merge_lines(order_data.items)

        async with self._uow() as uow:
            # 1. Проверка всех товаров до любых изменений остатков
            products = await uow.products.get_many(list(requested))
            order_items = []
            subtotal = Decimal("0")
            for product_id, quantity in requested.items():
                product = products.get(product_id)
                if not product or not product.is_available():
                    raise ProductUnavailableError(product_id)
                if product.stock < quantity:
                    raise InsufficientStockError(product.name, product.stock, quantity)

                # Снимок товара на момент заказа
                item = OrderItem(
                    product_id=product.id,
                    name=product.name,
                    quantity=quantity,
                    price=product.price,
                    image=product.image
                )
                order_items.append(item)
                subtotal += item.line_total

            # 2. Сверка суммы (subtotal клиента не используется)
            tax = to_money(order_data.tax)
            shipping = to_money(order_data.shipping)
            discount = to_money(order_data.discount)
            calculated_total = subtotal + tax + shipping - discount
            if calculated_total < 0 or abs(calculated_total - order_data.total) > TOTAL_TOLERANCE:
                logger.warning(
                    f"Расхождение суммы заказа пользователя {order_data.user_id}: "
                    f"рассчитано {calculated_total}, получено {order_data.total}"
                )
                raise OrderTotalMismatchError(calculated_total, order_data.total)

            # 3. Резервирование: атомарное списание, при гонке откатится вся транзакция
            for item in order_items:
                if not await uow.products.decrement_stock(item.product_id, item.quantity):
                    current = await uow.products.get_by_id(item.product_id)
                    available = current.stock if current else 0
                    logger.warning(f"Остаток товара {item.product_id} изменился во время оформления")
                    raise InsufficientStockError(item.name, available, item.quantity)

            # 4. Создание заказа
            now = utcnow()
            order = Order(
                id=str(uuid.uuid4()),
                order_number=await self._next_order_number(uow),
                user_id=order_data.user_id,
                items=order_items,
                shipping_address=order_data.shipping_address,
                billing_address=order_data.billing_address or order_data.shipping_address,
                payment_method=order_data.payment_method,
                payment_status=PaymentStatus.PENDING,
                order_status=OrderStatus.PENDING,
                subtotal=subtotal,
                tax=tax,
                shipping=shipping,
                discount=discount,
                total=calculated_total,
                currency=order_data.currency,
                notes=order_data.notes,
                status_history=[
                    StatusHistoryEntry(
                        status=OrderStatus.PENDING,
                        timestamp=now,
                        note="Заказ создан",
                        updated_by=order_data.user_id
                    )
                ],
                created_at=now,
                updated_at=now
            )
            await uow.orders.create(order)

            # 5. Очистка корзины
            await uow.carts.clear(order_data.user_id)

            # 6. События для outbox worker: уведомление и order.created
            await uow.outbox.create(
                event_type="notification.order_confirmation",
                event_data={
                    "user_id": order.user_id,
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "total": str(order.total),
                    "currency": order.currency
                },
                order_id=order.id
            )
            await uow.outbox.create(
                event_type="order.created",
                event_data={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "user_id": order.user_id,
                    "total": str(order.total),
                    "items": [
                        {"product_id": item.product_id, "quantity": item.quantity}
                        for item in order.items
                    ]
                },
                order_id=order.id
            )

            await uow.commit()

        logger.info(f"Заказ создан: {order.order_number} ({order.id})")
        return order

    async def _next_order_number(self, uow) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            order_number = self._order_number_factory()
            if not await uow.orders.exists_order_number(order_number):
                return order_number
            logger.warning(f"Номер заказа {order_number} уже занят, генерируем новый")
        raise OrderNumberGenerationError("Не удалось сгенерировать уникальный номер заказа")
