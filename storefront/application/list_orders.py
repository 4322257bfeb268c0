from typing import Optional
from pydantic import BaseModel

from storefront.domain.models import Order, OrderStatus, PaymentStatus, Pagination


class OrdersPage(BaseModel):
    orders: list[Order]
    pagination: Pagination


class ListUserOrdersUseCase:
    """Заказы пользователя, новые первыми"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str, page: int = 1, limit: int = 10) -> OrdersPage:
        async with self._uow() as uow:
            orders = await uow.orders.list_by_user(user_id, offset=(page - 1) * limit, limit=limit)
            total = await uow.orders.count_by_user(user_id)
        return OrdersPage(orders=orders, pagination=Pagination.build(page, limit, total))


class ListAllOrdersUseCase:
    """Все заказы для администратора с фильтрами по статусам"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None
    ) -> OrdersPage:
        async with self._uow() as uow:
            orders = await uow.orders.list(
                status=status,
                payment_status=payment_status,
                offset=(page - 1) * limit,
                limit=limit
            )
            total = await uow.orders.count(status=status, payment_status=payment_status)
        return OrdersPage(orders=orders, pagination=Pagination.build(page, limit, total))
