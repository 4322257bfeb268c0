from abc import ABC, abstractmethod
from typing import Optional, List
from storefront.domain.models import Order, OrderStatus, PaymentStatus, Product, ProductFilter, Cart


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> dict[str, Product]:
        pass

    @abstractmethod
    async def list(self, filters: Optional[ProductFilter] = None, offset: int = 0, limit: int = 20) -> List[Product]:
        pass

    @abstractmethod
    async def count(self, filters: Optional[ProductFilter] = None) -> int:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def update(self, product: Product) -> None:
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Атомарно уменьшает остаток, только если его хватает. False, если остатка не хватило."""
        pass

    @abstractmethod
    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        pass


class CartRepository(ABC):
    @abstractmethod
    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        pass

    @abstractmethod
    async def create(self, cart: Cart) -> None:
        pass

    @abstractmethod
    async def save(self, cart: Cart) -> None:
        pass

    @abstractmethod
    async def clear(self, user_id: str) -> None:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def exists_order_number(self, order_number: str) -> bool:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        """Сохраняет изменяемые поля заказа. С expected_status только если статус в БД не изменился."""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, offset: int = 0, limit: int = 10) -> List[Order]:
        pass

    @abstractmethod
    async def count_by_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        offset: int = 0,
        limit: int = 10
    ) -> List[Order]:
        pass

    @abstractmethod
    async def count(self, status: Optional[OrderStatus] = None, payment_status: Optional[PaymentStatus] = None) -> int:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass

    @abstractmethod
    async def mark_attempt_failed(self, event_id: str, max_attempts: int) -> None:
        pass


class UnitOfWork(ABC):
    """Репозитории одной транзакции"""

    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def carts(self) -> CartRepository:
        pass

    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send(self, message: str, reference_id: str, idempotency_key: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def send_order_confirmation(self, user_id: str, order_data: dict, idempotency_key: str) -> bool:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, payload: dict, key: str) -> bool:
        pass
