import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from storefront.domain.models import Order, OrderStatus, PaymentStatus
from storefront.domain.exceptions import OrderNotFoundError, InvalidOrderStatusError, InvalidStatusTransitionError

logger = logging.getLogger(__name__)


class UpdateOrderStatusDTO(BaseModel):
    order_id: str
    status: str
    updated_by: str
    note: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    estimated_delivery: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidOrderStatusError(value) from None


class UpdateOrderStatusUseCase:
    """Смена статуса администратором.

    По умолчанию переход разрешён из любого статуса в любой, остатки не меняются.
    При strict_transitions переходы проверяются по ALLOWED_TRANSITIONS.
    """

    def __init__(self, unit_of_work, strict_transitions: bool = False):
        self._uow = unit_of_work
        self._strict = strict_transitions

    async def __call__(self, dto: UpdateOrderStatusDTO) -> Order:
        status = parse_status(dto.status)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")

            if self._strict and not order.can_transition_to(status):
                raise InvalidStatusTransitionError(order.order_status, status)

            if dto.payment_status or dto.refund_amount is not None:
                order.record_refund(dto.payment_status or order.payment_status, dto.refund_amount, dto.refund_reason)

            previous_status = order.order_status
            order.update_status(status, dto.note, dto.updated_by)
            if dto.tracking_number:
                order.tracking_number = dto.tracking_number
            if dto.shipping_carrier:
                order.shipping_carrier = dto.shipping_carrier
            if dto.estimated_delivery:
                order.estimated_delivery = dto.estimated_delivery
            if dto.payment_status:
                order.payment_status = dto.payment_status

            await uow.orders.update(order)
            await uow.outbox.create(
                event_type="order.status_changed",
                event_data={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "user_id": order.user_id,
                    "previous_status": previous_status.value,
                    "status": status.value,
                    "payment_status": order.payment_status.value,
                    "tracking_number": order.tracking_number,
                    "refund_amount": str(order.refund_amount)
                },
                order_id=order.id
            )
            await uow.commit()

        logger.info(
            f"Статус заказа {order.order_number}: {previous_status.value} -> {status.value} "
            f"(администратор {dto.updated_by})"
        )
        return order
