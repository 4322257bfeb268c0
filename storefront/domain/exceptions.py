class DomainException(Exception):
    pass


class ProductNotFoundError(DomainException):
    pass


class ProductUnavailableError(DomainException):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Товар {product_id} не найден или недоступен")


class InsufficientStockError(DomainException):
    def __init__(self, product_name: str, available: int, required: int):
        self.product_name = product_name
        self.available = available
        self.required = required
        super().__init__(
            f"Недостаточно товара «{product_name}». Доступно: {available}, требуется: {required}"
        )


class OrderTotalMismatchError(DomainException):
    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        super().__init__(f"Сумма заказа не совпадает: рассчитано {expected}, получено {received}")


class OrderNotFoundError(DomainException):
    pass


class AccessDeniedError(DomainException):
    def __init__(self):
        super().__init__("Доступ запрещён")


class OrderNotCancellableError(DomainException):
    def __init__(self, status):
        self.status = status
        super().__init__(f"Невозможно отменить заказ в статусе: {getattr(status, 'value', status)}")


class InvalidOrderStatusError(DomainException):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Недопустимый статус заказа: {status}")


class InvalidStatusTransitionError(DomainException):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Переход из статуса {current.value} в {target.value} запрещён")


class CartItemNotFoundError(DomainException):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Товар {product_id} отсутствует в корзине")


class OrderNumberGenerationError(DomainException):
    pass


class InvalidRefundError(DomainException):
    pass
