from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from math import ceil
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from storefront.domain.exceptions import InsufficientStockError, CartItemNotFoundError, InvalidRefundError


TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING_FEE = Decimal("9.99")
# Допустимое расхождение между суммой клиента и суммой сервера
TOTAL_TOLERANCE = Decimal("0.01")
MAX_CART_ITEM_QUANTITY = 99

CENT = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(str, Enum):
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


# Прямой путь заказа и боковые ветки (отмена, возврат).
# Применяется только в строгом режиме, по умолчанию админ может выставить любой статус.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

NOT_CANCELLABLE_BY_USER = frozenset({
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})

REFUND_STATUSES = frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})

# Поля сортировки каталога: "price" по возрастанию, "-price" по убыванию
PRODUCT_SORT_FIELDS = ("price", "name", "stock", "created_at")
PRODUCT_SORT_PATTERN = r"^-?(" + "|".join(PRODUCT_SORT_FIELDS) + r")$"


class Product(BaseModel):
    """Domain Entity: товар каталога"""
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    stock: int = Field(ge=0)
    image: Optional[str] = None
    featured: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    def is_available(self) -> bool:
        return self.is_active


class ProductFilter(BaseModel):
    """Фильтры каталога. Без сортировки: сначала рекомендуемые, затем новые."""
    active_only: bool = True
    search: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    in_stock: bool = False
    featured: bool = False
    sort: Optional[str] = Field(None, pattern=PRODUCT_SORT_PATTERN)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    added_at: datetime


class Cart(BaseModel):
    """Domain Entity: корзина пользователя (одна на пользователя)"""
    id: str
    user_id: str
    items: list[CartItem] = []
    created_at: datetime
    updated_at: datetime

    def find_item(self, product_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add_item(self, product: Product, quantity: int) -> CartItem:
        """Добавляет товар или увеличивает количество существующей позиции.

        Итоговое количество проверяется по остатку на момент изменения,
        цена позиции обновляется до текущей цены товара.
        """
        existing = self.find_item(product.id)
        new_quantity = quantity + (existing.quantity if existing else 0)
        if new_quantity > product.stock:
            raise InsufficientStockError(product.name, product.stock, new_quantity)

        if existing:
            existing.quantity = new_quantity
            existing.price = product.price
            return existing

        item = CartItem(
            product_id=product.id,
            quantity=quantity,
            price=product.price,
            added_at=utcnow()
        )
        self.items.append(item)
        return item

    def update_item_quantity(self, product: Product, quantity: int) -> None:
        """Количество 0 удаляет позицию"""
        item = self.find_item(product.id)
        if not item:
            raise CartItemNotFoundError(product.id)
        if quantity == 0:
            self.remove_item(product.id)
            return
        if quantity > product.stock:
            raise InsufficientStockError(product.name, product.stock, quantity)
        item.quantity = quantity

    def remove_item(self, product_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.product_id != product_id]
        return len(self.items) != before

    def prune(self, products: dict[str, Product]) -> list[CartItem]:
        """Убирает позиции, чьи товары удалены или неактивны. Возвращает удалённые."""
        kept, removed = [], []
        for item in self.items:
            product = products.get(item.product_id)
            if product and product.is_available():
                kept.append(item)
            else:
                removed.append(item)
        self.items = kept
        return removed


class CartLine(BaseModel):
    product_id: str
    name: str
    image: Optional[str] = None
    stock: int
    quantity: int
    price: Decimal
    line_total: Decimal


class CartTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class CartView(BaseModel):
    """Корзина, собранная по текущему состоянию каталога. Не хранится."""
    user_id: str
    items: list[CartLine]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    item_count: int


def calculate_cart_totals(subtotal: Decimal) -> CartTotals:
    tax = subtotal * TAX_RATE
    shipping = Decimal("0") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE
    return CartTotals(
        subtotal=to_money(subtotal),
        tax=to_money(tax),
        shipping=to_money(shipping),
        total=to_money(subtotal + tax + shipping)
    )


def build_cart_view(cart: Cart, products: dict[str, Product]) -> CartView:
    """Считает корзину по текущим ценам. Ожидает уже очищенную корзину (см. Cart.prune)."""
    lines = []
    subtotal = Decimal("0")
    for item in cart.items:
        product = products[item.product_id]
        line_total = product.price * item.quantity
        subtotal += line_total
        lines.append(CartLine(
            product_id=product.id,
            name=product.name,
            image=product.image,
            stock=product.stock,
            quantity=item.quantity,
            price=product.price,
            line_total=to_money(line_total)
        ))

    totals = calculate_cart_totals(subtotal)
    return CartView(
        user_id=cart.user_id,
        items=lines,
        subtotal=totals.subtotal,
        tax=totals.tax,
        shipping=totals.shipping,
        total=totals.total,
        item_count=sum(line.quantity for line in lines)
    )


class Address(BaseModel):
    """Value Object: адрес доставки / оплаты"""
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(pattern=r"^\d{5}(-\d{4})?$")
    country: str = Field("US", min_length=1, max_length=100)
    phone: Optional[str] = None


class OrderItem(BaseModel):
    """Value Object: снимок товара на момент заказа, не меняется вместе с товаром"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class StatusHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    timestamp: datetime
    note: str
    updated_by: Optional[str] = None


class Order(BaseModel):
    """Domain Entity: заказ"""
    id: str
    order_number: str
    user_id: str
    items: list[OrderItem]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(ge=0)
    shipping: Decimal = Field(ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    currency: str = "USD"
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    # Остатки по заказу возвращены в каталог (не более одного раза)
    stock_restored_at: Optional[datetime] = None
    refund_amount: Decimal = Field(Decimal("0"), ge=0)
    refund_reason: Optional[str] = None
    status_history: list[StatusHistoryEntry] = []
    created_at: datetime
    updated_at: datetime

    def items_subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def calculated_total(self) -> Decimal:
        return self.subtotal + self.tax + self.shipping - self.discount

    def can_be_cancelled(self) -> bool:
        """Бизнес-правило: покупатель не может отменить отправленный, доставленный или уже отменённый заказ"""
        return self.order_status not in NOT_CANCELLABLE_BY_USER

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.order_status]

    def update_status(self, status: OrderStatus, note: Optional[str] = None, updated_by: Optional[str] = None) -> None:
        """Меняет статус и добавляет ровно одну запись в историю"""
        now = utcnow()
        self.order_status = status
        self.status_history.append(StatusHistoryEntry(
            status=status,
            timestamp=now,
            note=note or f"Статус заказа изменён на {status.value}",
            updated_by=updated_by
        ))
        if status == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif status == OrderStatus.CANCELLED:
            self.cancelled_at = now
        self.updated_at = now

    def cancel(self, reason: str, cancelled_by: str) -> None:
        self.update_status(OrderStatus.CANCELLED, reason, cancelled_by)
        self.cancel_reason = reason

    def mark_stock_restored(self) -> None:
        self.stock_restored_at = utcnow()

    def record_refund(self, payment_status: PaymentStatus, amount: Optional[Decimal] = None,
                      reason: Optional[str] = None) -> None:
        """Учёт возврата денег.

        refunded без суммы означает возврат всего заказа, partially_refunded
        требует сумму строго меньше total. Сумма возврата не может превышать total.
        """
        if payment_status not in REFUND_STATUSES:
            if amount is not None:
                raise InvalidRefundError("Сумма возврата указывается только для статусов refunded / partially_refunded")
            return

        if amount is None:
            if payment_status == PaymentStatus.PARTIALLY_REFUNDED:
                raise InvalidRefundError("Для частичного возврата нужна сумма")
            amount = self.total
        amount = to_money(amount)

        if amount <= 0 or amount > self.total:
            raise InvalidRefundError(f"Сумма возврата должна быть больше 0 и не больше {self.total}")
        if payment_status == PaymentStatus.PARTIALLY_REFUNDED and amount == self.total:
            raise InvalidRefundError("Частичный возврат не может быть равен сумме заказа")

        self.refund_amount = amount
        self.refund_reason = reason


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = ceil(total / limit) if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_orders=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1
        )
