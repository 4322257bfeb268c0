import logging
from typing import Optional
from pydantic import BaseModel

from storefront.domain.models import Order
from storefront.domain.exceptions import OrderNotFoundError, AccessDeniedError, OrderNotCancellableError

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Отменён покупателем"


class CancelOrderDTO(BaseModel):
    order_id: str
    user_id: str
    reason: Optional[str] = None


class CancelOrderUseCase:
    """Отмена заказа покупателем: возврат остатков и смена статуса в одной транзакции"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CancelOrderDTO) -> Order:
        reason = dto.reason or DEFAULT_CANCEL_REASON

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")
            if order.user_id != dto.user_id:
                raise AccessDeniedError()
            if not order.can_be_cancelled():
                raise OrderNotCancellableError(order.order_status)

            # Возврат остатков, обратный списанию при создании. Не более одного раза на заказ
            if order.stock_restored_at is None:
                for item in order.items:
                    restored = await uow.products.increment_stock(item.product_id, item.quantity)
                    if not restored:
                        logger.warning(f"Товар {item.product_id} не найден, остаток по заказу {order.id} не возвращён")
                order.mark_stock_restored()
            else:
                logger.info(f"Остатки по заказу {order.order_number} уже возвращались, повторного возврата нет")

            previous_status = order.order_status
            order.cancel(reason, dto.user_id)

            # Защита от параллельной отмены: статус в БД должен остаться прежним
            if not await uow.orders.update(order, expected_status=previous_status):
                current = await uow.orders.get_by_id(order.id)
                raise OrderNotCancellableError(current.order_status if current else previous_status)

            await uow.outbox.create(
                event_type="order.cancelled",
                event_data={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "user_id": order.user_id,
                    "reason": reason,
                    "items": [
                        {"product_id": item.product_id, "quantity": item.quantity}
                        for item in order.items
                    ]
                },
                order_id=order.id
            )

            await uow.commit()

        logger.info(f"Заказ {order.order_number} отменён пользователем {dto.user_id}. Причина: {reason}")
        return order
