"""Tests for domain entities and rules."""

import re
from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.domain.exceptions import CartItemNotFoundError, InsufficientStockError, InvalidRefundError
from storefront.domain.models import (
    Address, Cart, Order, OrderItem, OrderStatus, Pagination, PaymentMethod, PaymentStatus, Product,
    StatusHistoryEntry, build_cart_view, calculate_cart_totals, utcnow
)
from storefront.domain.order_number import generate_order_number


def make_product(product_id="p1", name="Замок", price="10.00", stock=5, is_active=True):
    now = utcnow()
    return Product(
        id=product_id, name=name, price=Decimal(price), stock=stock,
        is_active=is_active, created_at=now, updated_at=now,
    )


def make_order(status=OrderStatus.PENDING):
    now = utcnow()
    address = Address(
        first_name="A", last_name="B", street="S", city="C", state="ST", zip_code="12345"
    )
    return Order(
        id="o1",
        order_number="SH-123456001",
        user_id="u1",
        items=[OrderItem(product_id="p1", name="Замок", quantity=3, price=Decimal("10.00"))],
        shipping_address=address,
        billing_address=address,
        payment_method=PaymentMethod.CARD,
        order_status=status,
        subtotal=Decimal("30.00"),
        tax=Decimal("2.40"),
        shipping=Decimal("9.99"),
        discount=Decimal("5.00"),
        total=Decimal("37.39"),
        status_history=[StatusHistoryEntry(status=status, timestamp=now, note="Заказ создан")],
        created_at=now,
        updated_at=now,
    )


class TestOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"SH-\d{9}", generate_order_number())

    def test_custom_prefix(self):
        assert generate_order_number("XX").startswith("XX-")


class TestOrderTotals:
    def test_calculated_total(self):
        order = make_order()
        assert order.calculated_total() == Decimal("37.39")
        assert order.items_subtotal() == Decimal("30.00")

    def test_line_item_snapshot_is_frozen(self):
        order = make_order()
        with pytest.raises(ValidationError):
            order.items[0].price = Decimal("1.00")


class TestStatusMachine:
    def test_update_status_appends_one_entry(self):
        order = make_order()
        order.update_status(OrderStatus.CONFIRMED, updated_by="admin")

        assert order.order_status == OrderStatus.CONFIRMED
        assert len(order.status_history) == 2
        entry = order.status_history[-1]
        assert entry.status == OrderStatus.CONFIRMED
        assert entry.updated_by == "admin"
        assert "confirmed" in entry.note

    def test_custom_note(self):
        order = make_order()
        order.update_status(OrderStatus.PROCESSING, note="Собираем")
        assert order.status_history[-1].note == "Собираем"

    def test_delivered_stamps_timestamp(self):
        order = make_order()
        order.update_status(OrderStatus.DELIVERED)
        assert order.delivered_at is not None
        assert order.cancelled_at is None

    def test_cancel_sets_reason_and_timestamp(self):
        order = make_order()
        order.cancel("changed mind", "u1")
        assert order.order_status == OrderStatus.CANCELLED
        assert order.cancel_reason == "changed mind"
        assert order.cancelled_at is not None
        assert order.status_history[-1].note == "changed mind"

    def test_any_status_may_follow_any_status(self):
        order = make_order(OrderStatus.DELIVERED)
        order.update_status(OrderStatus.PENDING)
        assert order.order_status == OrderStatus.PENDING

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.RETURNED])
    def test_cancellable_statuses(self, status):
        assert make_order(status).can_be_cancelled()

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_not_cancellable_statuses(self, status):
        assert not make_order(status).can_be_cancelled()

    def test_transition_table(self):
        order = make_order()
        assert order.can_transition_to(OrderStatus.CONFIRMED)
        assert order.can_transition_to(OrderStatus.CANCELLED)
        assert not order.can_transition_to(OrderStatus.DELIVERED)
        assert not make_order(OrderStatus.CANCELLED).can_transition_to(OrderStatus.PENDING)


class TestRefund:
    def test_full_refund_defaults_to_total(self):
        order = make_order(OrderStatus.DELIVERED)
        order.record_refund(PaymentStatus.REFUNDED, reason="брак")
        assert order.refund_amount == Decimal("37.39")
        assert order.refund_reason == "брак"

    def test_partial_refund_is_rounded(self):
        order = make_order(OrderStatus.DELIVERED)
        order.record_refund(PaymentStatus.PARTIALLY_REFUNDED, Decimal("5.005"))
        assert order.refund_amount == Decimal("5.01")

    def test_partial_refund_requires_amount(self):
        with pytest.raises(InvalidRefundError):
            make_order().record_refund(PaymentStatus.PARTIALLY_REFUNDED)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("37.40")])
    def test_amount_out_of_range(self, amount):
        with pytest.raises(InvalidRefundError):
            make_order().record_refund(PaymentStatus.REFUNDED, amount)

    def test_partial_refund_of_whole_total(self):
        with pytest.raises(InvalidRefundError):
            make_order().record_refund(PaymentStatus.PARTIALLY_REFUNDED, Decimal("37.39"))

    def test_amount_without_refund_status(self):
        order = make_order()
        with pytest.raises(InvalidRefundError):
            order.record_refund(PaymentStatus.PAID, Decimal("1.00"))
        order.record_refund(PaymentStatus.PAID)
        assert order.refund_amount == Decimal("0")


class TestCart:
    def make_cart(self):
        now = utcnow()
        return Cart(id="c1", user_id="u1", items=[], created_at=now, updated_at=now)

    def test_add_merges_existing_entry(self):
        cart = self.make_cart()
        product = make_product(stock=5)
        cart.add_item(product, 2)
        cart.add_item(product, 1)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_add_refreshes_price(self):
        cart = self.make_cart()
        cart.add_item(make_product(price="10.00"), 1)
        cart.add_item(make_product(price="12.00"), 1)
        assert cart.items[0].price == Decimal("12.00")

    def test_add_beyond_stock(self):
        cart = self.make_cart()
        product = make_product(stock=3)
        cart.add_item(product, 2)
        with pytest.raises(InsufficientStockError) as exc_info:
            cart.add_item(product, 2)
        assert exc_info.value.available == 3
        assert cart.items[0].quantity == 2

    def test_update_to_zero_removes(self):
        cart = self.make_cart()
        product = make_product()
        cart.add_item(product, 2)
        cart.update_item_quantity(product, 0)
        assert cart.items == []

    def test_update_missing_item(self):
        cart = self.make_cart()
        with pytest.raises(CartItemNotFoundError):
            cart.update_item_quantity(make_product(), 1)

    def test_prune_drops_missing_and_inactive(self):
        cart = self.make_cart()
        active = make_product("p1")
        inactive = make_product("p2")
        gone = make_product("p3")
        for product in (active, inactive, gone):
            cart.add_item(product, 1)

        removed = cart.prune({"p1": active, "p2": inactive.model_copy(update={"is_active": False})})

        assert [item.product_id for item in cart.items] == ["p1"]
        assert {item.product_id for item in removed} == {"p2", "p3"}


class TestCartTotals:
    def test_tax_and_flat_shipping(self):
        totals = calculate_cart_totals(Decimal("50.00"))
        assert totals.tax == Decimal("4.00")
        assert totals.shipping == Decimal("9.99")
        assert totals.total == Decimal("63.99")

    def test_free_shipping_above_threshold(self):
        totals = calculate_cart_totals(Decimal("150.00"))
        assert totals.shipping == Decimal("0.00")
        assert totals.total == Decimal("162.00")

    def test_threshold_itself_is_not_free(self):
        assert calculate_cart_totals(Decimal("100.00")).shipping == Decimal("9.99")

    def test_empty_cart_still_shows_flat_fee(self):
        totals = calculate_cart_totals(Decimal("0"))
        assert totals.tax == Decimal("0.00")
        assert totals.total == Decimal("9.99")

    def test_view_uses_current_prices(self):
        now = utcnow()
        cart = Cart(id="c1", user_id="u1", items=[], created_at=now, updated_at=now)
        cart.add_item(make_product(price="10.00"), 2)

        view = build_cart_view(cart, {"p1": make_product(price="15.00")})

        assert view.items[0].price == Decimal("15.00")
        assert view.subtotal == Decimal("30.00")
        assert view.item_count == 2


class TestPagination:
    def test_build(self):
        pagination = Pagination.build(page=2, limit=10, total=25)
        assert pagination.total_pages == 3
        assert pagination.has_next_page is True
        assert pagination.has_prev_page is True

    def test_empty(self):
        pagination = Pagination.build(page=1, limit=10, total=0)
        assert pagination.total_pages == 0
        assert pagination.has_next_page is False
        assert pagination.has_prev_page is False
