from decimal import Decimal
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from storefront.domain.models import (
    Address, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, StatusHistoryEntry, Pagination,
    MAX_CART_ITEM_QUANTITY
)


class OrderItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: PaymentMethod
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(ge=0)
    shipping: Decimal = Field(ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    notes: Optional[str] = Field(None, max_length=1000)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: Optional[str] = Field(None, max_length=500)
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    estimated_delivery: Optional[datetime] = None
    refund_amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    refund_reason: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    items: list[OrderItem]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    refund_amount: Decimal
    refund_reason: Optional[str] = None
    status_history: list[StatusHistoryEntry]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order):
        return cls.model_validate(order.model_dump())


class OrderListResponse(BaseModel):
    success: bool = True
    orders: list[OrderResponse]
    pagination: Pagination

    @classmethod
    def from_page(cls, page):
        return cls(
            orders=[OrderResponse.from_domain(order) for order in page.orders],
            pagination=page.pagination
        )


class CartItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_CART_ITEM_QUANTITY)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=0, le=MAX_CART_ITEM_QUANTITY)


class ProductCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(ge=0, decimal_places=2)
    stock: int = Field(0, ge=0)
    image: Optional[str] = None
    featured: bool = False
    is_active: bool = True


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None
    featured: Optional[bool] = None
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    image: Optional[str] = None
    featured: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, product):
        return cls.model_validate(product.model_dump())


class ProductListResponse(BaseModel):
    success: bool = True
    products: list[ProductResponse]
    total: int
    page: int
    limit: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


class FieldError(BaseModel):
    field: str
    message: str


class ValidationErrorResponse(ErrorResponse):
    errors: list[FieldError]
