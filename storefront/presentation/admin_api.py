from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront.presentation.schemas import (
    UpdateOrderStatusRequest, OrderResponse, OrderListResponse, ProductCreateRequest, ProductUpdateRequest,
    ProductResponse, ProductListResponse, ErrorResponse, ValidationErrorResponse
)
from storefront.presentation.dependencies import (
    CurrentUser, require_admin, get_list_all_orders_use_case, get_update_order_status_use_case,
    get_list_products_use_case, get_create_product_use_case, get_update_product_use_case,
    get_deactivate_product_use_case
)
from storefront.presentation.errors import service_unavailable
from storefront.application.list_orders import ListAllOrdersUseCase
from storefront.application.update_order_status import UpdateOrderStatusUseCase, UpdateOrderStatusDTO
from storefront.application.products import (
    ListProductsUseCase, CreateProductUseCase, UpdateProductUseCase, DeactivateProductUseCase,
    CreateProductDTO, UpdateProductDTO
)
from storefront.domain.models import OrderStatus, PaymentStatus, ProductFilter
from storefront.domain.exceptions import (
    OrderNotFoundError, ProductNotFoundError, InvalidOrderStatusError, InvalidStatusTransitionError,
    InvalidRefundError
)

router = APIRouter(prefix="/admin")

ERROR_RESPONSES = {
    400: {"model": ValidationErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    503: {"model": ErrorResponse}
}


@router.get("/orders", response_model=OrderListResponse, responses=ERROR_RESPONSES)
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    use_case: ListAllOrdersUseCase = Depends(get_list_all_orders_use_case)
):
    """Все заказы с фильтрами по статусу заказа и оплаты"""
    try:
        result = await use_case(page=page, limit=limit, status=order_status, payment_status=payment_status)
        return OrderListResponse.from_page(result)
    except Exception as e:
        raise service_unavailable(e)


@router.put(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}}
)
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    admin: CurrentUser = Depends(require_admin),
    use_case: UpdateOrderStatusUseCase = Depends(get_update_order_status_use_case)
):
    """Сменить статус заказа"""
    try:
        dto = UpdateOrderStatusDTO(
            order_id=order_id,
            status=request.status,
            updated_by=admin.id,
            note=request.note,
            tracking_number=request.tracking_number,
            shipping_carrier=request.shipping_carrier,
            payment_status=request.payment_status,
            estimated_delivery=request.estimated_delivery,
            refund_amount=request.refund_amount,
            refund_reason=request.refund_reason
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Заказ не найден")
    except (InvalidOrderStatusError, InvalidStatusTransitionError, InvalidRefundError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise service_unavailable(e)


@router.get("/products", response_model=ProductListResponse, responses=ERROR_RESPONSES)
async def list_all_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    use_case: ListProductsUseCase = Depends(get_list_products_use_case)
):
    """Все товары, включая неактивные"""
    try:
        result = await use_case(page=page, limit=limit, filters=ProductFilter(active_only=False))
        return ProductListResponse(
            products=[ProductResponse.from_domain(product) for product in result.products],
            total=result.total,
            page=result.page,
            limit=result.limit
        )
    except Exception as e:
        raise service_unavailable(e)


@router.post(
    "/products",
    response_model=ProductResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_product(
    request: ProductCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    use_case: CreateProductUseCase = Depends(get_create_product_use_case)
):
    """Создать товар"""
    try:
        product = await use_case(CreateProductDTO(**request.model_dump()))
        return ProductResponse.from_domain(product)
    except Exception as e:
        raise service_unavailable(e)


@router.put(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}}
)
async def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    use_case: UpdateProductUseCase = Depends(get_update_product_use_case)
):
    """Обновить товар"""
    try:
        product = await use_case(product_id, UpdateProductDTO(**request.model_dump(exclude_unset=True)))
        return ProductResponse.from_domain(product)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="Товар не найден")
    except Exception as e:
        raise service_unavailable(e)


@router.delete(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}}
)
async def deactivate_product(
    product_id: str,
    admin: CurrentUser = Depends(require_admin),
    use_case: DeactivateProductUseCase = Depends(get_deactivate_product_use_case)
):
    """Снять товар с продажи (мягкое удаление)"""
    try:
        product = await use_case(product_id)
        return ProductResponse.from_domain(product)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="Товар не найден")
    except Exception as e:
        raise service_unavailable(e)
