from storefront.domain.models import Order
from storefront.domain.exceptions import OrderNotFoundError, AccessDeniedError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, user_id: str, is_admin: bool = False) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            # Владелец или администратор
            if order.user_id != user_id and not is_admin:
                raise AccessDeniedError()
            return order
