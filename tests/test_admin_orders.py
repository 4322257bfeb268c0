"""Tests for administrator operations: status changes, order listings and catalog management."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.application.get_order import GetOrderUseCase
from storefront.application.list_orders import ListAllOrdersUseCase, ListUserOrdersUseCase
from storefront.application.products import (
    CreateProductDTO, CreateProductUseCase, DeactivateProductUseCase, GetProductUseCase, ListProductsUseCase,
    UpdateProductDTO, UpdateProductUseCase
)
from storefront.application.update_order_status import UpdateOrderStatusDTO, UpdateOrderStatusUseCase
from storefront.domain.exceptions import (
    AccessDeniedError, InvalidOrderStatusError, InvalidRefundError, InvalidStatusTransitionError, OrderNotFoundError,
    ProductNotFoundError
)
from storefront.domain.models import OrderStatus, PaymentStatus, ProductFilter


def status_dto(order_id, status, **kwargs):
    return UpdateOrderStatusDTO(order_id=order_id, status=status, updated_by="admin-1", **kwargs)


class TestUpdateOrderStatus:
    @pytest.mark.asyncio
    async def test_each_change_appends_history(self, uow, make_product, fetch_order, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])
        use_case = UpdateOrderStatusUseCase(uow)

        for status in ("confirmed", "processing", "shipped"):
            await use_case(status_dto(order.id, status))

        stored = await fetch_order(order.id)
        assert stored.order_status == OrderStatus.SHIPPED
        assert [entry.status for entry in stored.status_history] == [
            OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED
        ]
        assert stored.status_history[-1].updated_by == "admin-1"

    @pytest.mark.asyncio
    async def test_any_transition_is_allowed_by_default(self, uow, make_product, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])
        use_case = UpdateOrderStatusUseCase(uow)

        await use_case(status_dto(order.id, "delivered"))
        updated = await use_case(status_dto(order.id, "pending"))

        assert updated.order_status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_delivered_sets_timestamp(self, uow, make_product, fetch_order, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])

        await UpdateOrderStatusUseCase(uow)(status_dto(order.id, "delivered", note="Вручён лично"))

        stored = await fetch_order(order.id)
        assert stored.delivered_at is not None
        assert stored.status_history[-1].note == "Вручён лично"

    @pytest.mark.asyncio
    async def test_tracking_and_payment_details(self, uow, make_product, fetch_order, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])

        await UpdateOrderStatusUseCase(uow)(status_dto(
            order.id,
            "shipped",
            tracking_number="1Z999",
            shipping_carrier="UPS",
            payment_status=PaymentStatus.PAID
        ))

        stored = await fetch_order(order.id)
        assert stored.tracking_number == "1Z999"
        assert stored.shipping_carrier == "UPS"
        assert stored.payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_refund_bookkeeping(self, uow, make_product, fetch_order, place_order):
        product = await make_product(price="10.00")
        order = await place_order([(product.id, 2, "10.00")])
        delivery = datetime(2026, 11, 2, 12, 0, tzinfo=timezone.utc)

        await UpdateOrderStatusUseCase(uow)(status_dto(
            order.id,
            "delivered",
            estimated_delivery=delivery,
            payment_status=PaymentStatus.REFUNDED,
            refund_reason="Не подошёл размер"
        ))

        stored = await fetch_order(order.id)
        assert stored.payment_status == PaymentStatus.REFUNDED
        assert stored.refund_amount == Decimal("20.00")
        assert stored.refund_reason == "Не подошёл размер"
        assert stored.estimated_delivery is not None

    @pytest.mark.asyncio
    async def test_invalid_refund_changes_nothing(self, uow, make_product, fetch_order, place_order):
        product = await make_product(price="10.00")
        order = await place_order([(product.id, 1, "10.00")])

        with pytest.raises(InvalidRefundError):
            await UpdateOrderStatusUseCase(uow)(status_dto(
                order.id, "delivered", payment_status=PaymentStatus.PARTIALLY_REFUNDED, refund_amount=Decimal("10.00")
            ))

        stored = await fetch_order(order.id)
        assert stored.order_status == OrderStatus.PENDING
        assert stored.payment_status == PaymentStatus.PENDING
        assert stored.refund_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_status(self, uow, make_product, fetch_order, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])

        with pytest.raises(InvalidOrderStatusError):
            await UpdateOrderStatusUseCase(uow)(status_dto(order.id, "lost"))

        assert len((await fetch_order(order.id)).status_history) == 1

    @pytest.mark.asyncio
    async def test_unknown_order(self, uow):
        with pytest.raises(OrderNotFoundError):
            await UpdateOrderStatusUseCase(uow)(status_dto("missing", "confirmed"))

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_skipped_steps(self, uow, make_product, fetch_order, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])
        use_case = UpdateOrderStatusUseCase(uow, strict_transitions=True)

        with pytest.raises(InvalidStatusTransitionError):
            await use_case(status_dto(order.id, "delivered"))
        updated = await use_case(status_dto(order.id, "confirmed"))

        assert updated.order_status == OrderStatus.CONFIRMED
        assert (await fetch_order(order.id)).order_status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_admin_cancel_does_not_restock(self, uow, make_product, fetch_product, place_order):
        product = await make_product(stock=5)
        order = await place_order([(product.id, 2, "10.00")])

        await UpdateOrderStatusUseCase(uow)(status_dto(order.id, "cancelled"))

        assert (await fetch_product(product.id)).stock == 3


class TestOrderQueries:
    @pytest.mark.asyncio
    async def test_owner_and_admin_can_read(self, uow, make_product, place_order):
        product = await make_product()
        order = await place_order([(product.id, 1, "10.00")])
        use_case = GetOrderUseCase(uow)

        assert (await use_case(order.id, "user-1")).id == order.id
        assert (await use_case(order.id, "admin-1", is_admin=True)).id == order.id
        with pytest.raises(AccessDeniedError):
            await use_case(order.id, "user-2")
        with pytest.raises(OrderNotFoundError):
            await use_case("missing", "user-1")

    @pytest.mark.asyncio
    async def test_user_listing_is_scoped_and_paginated(self, uow, make_product, place_order):
        product = await make_product(stock=10)
        placed = [await place_order([(product.id, 1, "10.00")]) for _ in range(3)]
        await place_order([(product.id, 1, "10.00")], user_id="user-2")

        page = await ListUserOrdersUseCase(uow)("user-1", page=1, limit=2)

        assert page.pagination.total_orders == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.has_next_page is True
        assert len(page.orders) == 2
        assert all(order.user_id == "user-1" for order in page.orders)
        assert page.orders[0].created_at >= page.orders[1].created_at
        assert {order.id for order in page.orders} <= {order.id for order in placed}

    @pytest.mark.asyncio
    async def test_admin_listing_filters(self, uow, make_product, place_order):
        product = await make_product(stock=10)
        first = await place_order([(product.id, 1, "10.00")])
        second = await place_order([(product.id, 1, "10.00")], user_id="user-2")
        await UpdateOrderStatusUseCase(uow)(
            status_dto(second.id, "shipped", payment_status=PaymentStatus.PAID)
        )
        use_case = ListAllOrdersUseCase(uow)

        everything = await use_case()
        shipped = await use_case(status=OrderStatus.SHIPPED)
        paid = await use_case(payment_status=PaymentStatus.PAID)
        pending = await use_case(status=OrderStatus.PENDING)

        assert everything.pagination.total_orders == 2
        assert [order.id for order in shipped.orders] == [second.id]
        assert [order.id for order in paid.orders] == [second.id]
        assert [order.id for order in pending.orders] == [first.id]


class TestCatalogManagement:
    @pytest.mark.asyncio
    async def test_create_and_list(self, uow):
        product = await CreateProductUseCase(uow)(
            CreateProductDTO(name="Штатив", price=Decimal("19.99"), stock=4)
        )

        page = await ListProductsUseCase(uow)()

        assert page.total == 1
        assert page.products[0].id == product.id
        assert page.products[0].price == Decimal("19.99")

    @pytest.mark.asyncio
    async def test_partial_update(self, uow, make_product, fetch_product):
        product = await make_product(name="Камера", price="10.00", image="camera.png")

        updated = await UpdateProductUseCase(uow)(
            product.id, UpdateProductDTO(price=Decimal("12.50"), image=None, name=None)
        )

        assert updated.name == "Камера"
        assert updated.price == Decimal("12.50")
        assert updated.image is None
        stored = await fetch_product(product.id)
        assert stored.price == Decimal("12.50")
        assert stored.image is None

    @pytest.mark.asyncio
    async def test_update_unknown_product(self, uow):
        with pytest.raises(ProductNotFoundError):
            await UpdateProductUseCase(uow)("missing", UpdateProductDTO(stock=1))

    @pytest.mark.asyncio
    async def test_deactivated_product_is_hidden_from_catalog(self, uow, make_product):
        product = await make_product()

        await DeactivateProductUseCase(uow)(product.id)

        assert (await ListProductsUseCase(uow)()).total == 0
        assert (await ListProductsUseCase(uow)(filters=ProductFilter(active_only=False))).total == 1
        with pytest.raises(ProductNotFoundError):
            await GetProductUseCase(uow)(product.id)
        assert (await GetProductUseCase(uow)(product.id, include_inactive=True)).is_active is False
