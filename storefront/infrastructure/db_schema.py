from sqlalchemy import Table, Column, String, Integer, Boolean, Numeric, Enum, DateTime, JSON, MetaData, Text, CheckConstraint
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus, PaymentStatus, PaymentMethod

metadata = MetaData()


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("description", Text, nullable=True),
    Column("price", Numeric(10, 2), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("image", String, nullable=True),
    Column("featured", Boolean, nullable=False, default=False, index=True),
    Column("is_active", Boolean, nullable=False, default=True, index=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    CheckConstraint("price >= 0", name="ck_products_price_non_negative")
)


# Позиции корзины хранятся внутри строки корзины
carts_tbl = Table(
    "carts",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, unique=True, index=True),
    Column("items", JSON, nullable=False, default=list),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


# Позиции, адреса и история статусов принадлежат заказу и хранятся в JSON
orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_number", String(32), nullable=False, unique=True, index=True),
    Column("user_id", String, nullable=False, index=True),
    Column("items", JSON, nullable=False),
    Column("shipping_address", JSON, nullable=False),
    Column("billing_address", JSON, nullable=False),
    Column("payment_method", Enum(PaymentMethod), nullable=False),
    Column("payment_status", Enum(PaymentStatus), default=PaymentStatus.PENDING, index=True),
    Column("order_status", Enum(OrderStatus), default=OrderStatus.PENDING, index=True),
    Column("subtotal", Numeric(12, 2), nullable=False),
    Column("tax", Numeric(12, 2), nullable=False),
    Column("shipping", Numeric(12, 2), nullable=False),
    Column("discount", Numeric(12, 2), nullable=False, default=0),
    Column("total", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False, default="USD"),
    Column("notes", Text, nullable=True),
    Column("tracking_number", String, nullable=True),
    Column("shipping_carrier", String, nullable=True),
    Column("estimated_delivery", DateTime(timezone=True), nullable=True),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("cancel_reason", Text, nullable=True),
    Column("stock_restored_at", DateTime(timezone=True), nullable=True),
    Column("refund_amount", Numeric(12, 2), nullable=False, default=0),
    Column("refund_reason", Text, nullable=True),
    Column("status_history", JSON, nullable=False, default=list),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), index=True),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("status", String, default="pending", index=True),
    Column("attempts", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)
