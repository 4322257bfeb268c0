from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from storefront.presentation.schemas import (
    CreateOrderRequest, CancelOrderRequest, OrderResponse, OrderListResponse, CartItemRequest,
    UpdateCartItemRequest, ProductResponse, ProductListResponse, MessageResponse, ErrorResponse,
    ValidationErrorResponse
)
from storefront.presentation.dependencies import (
    CurrentUser, get_current_user, get_create_order_use_case, get_get_order_use_case,
    get_list_user_orders_use_case, get_cancel_order_use_case, get_get_cart_use_case, get_add_to_cart_use_case,
    get_update_cart_item_use_case, get_remove_from_cart_use_case, get_clear_cart_use_case,
    get_list_products_use_case, get_list_featured_products_use_case, get_get_product_use_case
)
from storefront.presentation.errors import service_unavailable
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.get_order import GetOrderUseCase
from storefront.application.list_orders import ListUserOrdersUseCase
from storefront.application.cancel_order import CancelOrderUseCase, CancelOrderDTO
from storefront.application.cart import (
    GetCartUseCase, AddToCartUseCase, UpdateCartItemUseCase, RemoveFromCartUseCase, ClearCartUseCase
)
from storefront.application.products import ListProductsUseCase, ListFeaturedProductsUseCase, GetProductUseCase
from storefront.domain.models import CartView, ProductFilter, PRODUCT_SORT_PATTERN
from storefront.domain.exceptions import (
    ProductUnavailableError, ProductNotFoundError, InsufficientStockError, OrderTotalMismatchError,
    OrderNotFoundError, AccessDeniedError, OrderNotCancellableError, CartItemNotFoundError
)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ValidationErrorResponse},
    401: {"model": ErrorResponse},
    503: {"model": ErrorResponse}
}


@router.get("/products", response_model=ProductListResponse, responses={400: {"model": ValidationErrorResponse}})
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    min_price: Optional[Decimal] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[Decimal] = Query(None, ge=0, alias="maxPrice"),
    in_stock: bool = Query(False, alias="inStock"),
    featured: bool = False,
    sort: Optional[str] = Query(None, pattern=PRODUCT_SORT_PATTERN),
    use_case: ListProductsUseCase = Depends(get_list_products_use_case)
):
    """Каталог активных товаров с поиском, фильтрами и сортировкой"""
    filters = ProductFilter(
        search=search,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        featured=featured,
        sort=sort
    )
    try:
        result = await use_case(page=page, limit=limit, filters=filters)
        return ProductListResponse(
            products=[ProductResponse.from_domain(product) for product in result.products],
            total=result.total,
            page=result.page,
            limit=result.limit
        )
    except Exception as e:
        raise service_unavailable(e)


@router.get("/products/featured", response_model=list[ProductResponse])
async def list_featured_products(
    limit: int = Query(8, ge=1, le=50),
    use_case: ListFeaturedProductsUseCase = Depends(get_list_featured_products_use_case)
):
    """Рекомендуемые товары в наличии"""
    try:
        products = await use_case(limit=limit)
        return [ProductResponse.from_domain(product) for product in products]
    except Exception as e:
        raise service_unavailable(e)


@router.get("/products/{product_id}", response_model=ProductResponse, responses={404: {"model": ErrorResponse}})
async def get_product(
    product_id: str,
    use_case: GetProductUseCase = Depends(get_get_product_use_case)
):
    """Получить товар по ID"""
    try:
        product = await use_case(product_id)
        return ProductResponse.from_domain(product)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="Товар не найден")
    except Exception as e:
        raise service_unavailable(e)


@router.get("/cart", response_model=CartView, responses=ERROR_RESPONSES)
async def get_cart(
    user: CurrentUser = Depends(get_current_user),
    use_case: GetCartUseCase = Depends(get_get_cart_use_case)
):
    """Корзина пользователя, сверенная с каталогом"""
    try:
        return await use_case(user.id)
    except Exception as e:
        raise service_unavailable(e)


@router.post("/cart/items", response_model=CartView, responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}})
async def add_to_cart(
    request: CartItemRequest,
    user: CurrentUser = Depends(get_current_user),
    use_case: AddToCartUseCase = Depends(get_add_to_cart_use_case)
):
    """Добавить товар в корзину"""
    try:
        return await use_case(user.id, request.product_id, request.quantity)
    except ProductUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientStockError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)


@router.put(
    "/cart/items/{product_id}",
    response_model=CartView,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}}
)
async def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    user: CurrentUser = Depends(get_current_user),
    use_case: UpdateCartItemUseCase = Depends(get_update_cart_item_use_case)
):
    """Изменить количество товара в корзине (0 удаляет позицию)"""
    try:
        return await use_case(user.id, product_id, request.quantity)
    except (CartItemNotFoundError, ProductUnavailableError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientStockError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)


@router.delete("/cart/items/{product_id}", response_model=CartView, responses=ERROR_RESPONSES)
async def remove_from_cart(
    product_id: str,
    user: CurrentUser = Depends(get_current_user),
    use_case: RemoveFromCartUseCase = Depends(get_remove_from_cart_use_case)
):
    """Удалить товар из корзины"""
    try:
        return await use_case(user.id, product_id)
    except Exception as e:
        raise service_unavailable(e)


@router.delete("/cart", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def clear_cart(
    user: CurrentUser = Depends(get_current_user),
    use_case: ClearCartUseCase = Depends(get_clear_cart_use_case)
):
    """Очистить корзину"""
    try:
        await use_case(user.id)
        return MessageResponse(message="Корзина очищена")
    except Exception as e:
        raise service_unavailable(e)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Оформить заказ"""
    try:
        dto = CreateOrderDTO(
            user_id=user.id,
            items=[OrderLineDTO(product_id=item.product_id, quantity=item.quantity) for item in request.items],
            shipping_address=request.shipping_address,
            billing_address=request.billing_address,
            payment_method=request.payment_method,
            subtotal=request.subtotal,
            tax=request.tax,
            shipping=request.shipping,
            discount=request.discount,
            total=request.total,
            notes=request.notes
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)

    except ProductUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientStockError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderTotalMismatchError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)


@router.get("/orders", response_model=OrderListResponse, responses=ERROR_RESPONSES)
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    use_case: ListUserOrdersUseCase = Depends(get_list_user_orders_use_case)
):
    """Заказы текущего пользователя"""
    try:
        result = await use_case(user.id, page=page, limit=limit)
        return OrderListResponse.from_page(result)
    except Exception as e:
        raise service_unavailable(e)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Получить заказ по ID"""
    try:
        order = await use_case(order_id, user.id, is_admin=user.is_admin)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Заказ не найден")
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)


@router.put(
    "/orders/{order_id}/cancel",
    response_model=OrderResponse,
    responses={**ERROR_RESPONSES, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def cancel_order(
    order_id: str,
    request: Optional[CancelOrderRequest] = Body(None),
    user: CurrentUser = Depends(get_current_user),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case)
):
    """Отменить свой заказ"""
    try:
        dto = CancelOrderDTO(
            order_id=order_id,
            user_id=user.id,
            reason=request.reason if request else None
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Заказ не найден")
    except AccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except OrderNotCancellableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)
