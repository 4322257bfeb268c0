import random
import time

ORDER_NUMBER_PREFIX = "SH"


def generate_order_number(prefix: str = ORDER_NUMBER_PREFIX) -> str:
    """Номер заказа: SH-<последние 6 цифр времени в мс><3 случайные цифры>, например SH-123456042.

    Уникальность не гарантируется, её обеспечивает unique-ограничение в БД
    и повторная генерация при совпадении.
    """
    timestamp = str(time.time_ns() // 1_000_000)
    random_part = str(random.randint(0, 999)).zfill(3)
    return f"{prefix}-{timestamp[-6:]}{random_part}"
