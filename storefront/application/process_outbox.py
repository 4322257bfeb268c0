import logging
import json

logger = logging.getLogger(__name__)

NOTIFICATION_ORDER_CONFIRMATION = "notification.order_confirmation"


class ProcessOutboxEventsUseCase:
    def __init__(self, unit_of_work, event_publisher, notifications_client, max_attempts: int = 5):
        self._uow = unit_of_work
        self._events = event_publisher
        self._notifications = notifications_client
        self._max_attempts = max_attempts

    async def __call__(self, limit: int = 5) -> int:
        """Обрабатывает pending события из outbox. Возвращает количество опубликованных."""
        published = 0

        async with self._uow() as uow:
            pending = await uow.outbox.get_pending(limit=limit)

            for event in pending:
                try:
                    event_data = event["event_data"]
                    if isinstance(event_data, str):
                        event_data = json.loads(event_data)

                    success = await self._dispatch(event, event_data)
                except Exception as e:
                    logger.error(f"Ошибка обработки outbox event {event['id']}: {e}", exc_info=True)
                    success = False

                if success:
                    await uow.outbox.mark_as_published(event["id"])
                    published += 1
                    logger.info(f"Опубликовано {event['event_type']} event {event['id']}")
                else:
                    await uow.outbox.mark_attempt_failed(event["id"], self._max_attempts)
                    logger.warning(
                        f"Не удалось обработать {event['event_type']} event {event['id']} "
                        f"(попытка {event['attempts'] + 1}/{self._max_attempts})"
                    )

            await uow.commit()

        return published

    async def _dispatch(self, event: dict, event_data: dict) -> bool:
        # Уведомление о заказе
        if event["event_type"] == NOTIFICATION_ORDER_CONFIRMATION:
            return await self._notifications.send_order_confirmation(
                user_id=event_data["user_id"],
                order_data=event_data,
                idempotency_key=f"notification_{event['id']}"
            )

        # События заказа в Kafka
        if event["event_type"].startswith("order."):
            return await self._events.publish(
                event_type=event["event_type"],
                payload=event_data,
                key=event["order_id"]
            )

        logger.error(f"Неизвестный тип outbox event: {event['event_type']}")
        return False
