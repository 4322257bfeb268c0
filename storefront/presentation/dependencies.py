from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.domain.models import UserRole
from storefront.application.create_order import CreateOrderUseCase
from storefront.application.get_order import GetOrderUseCase
from storefront.application.list_orders import ListUserOrdersUseCase, ListAllOrdersUseCase
from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.update_order_status import UpdateOrderStatusUseCase
from storefront.application.cart import (
    GetCartUseCase, AddToCartUseCase, UpdateCartItemUseCase, RemoveFromCartUseCase, ClearCartUseCase
)
from storefront.application.products import (
    ListProductsUseCase, ListFeaturedProductsUseCase, GetProductUseCase, CreateProductUseCase, UpdateProductUseCase,
    DeactivateProductUseCase
)
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.config import settings


class CurrentUser(BaseModel):
    """Пользователь, переданный шлюзом авторизации. Сервис доверяет заголовкам."""
    id: str
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None)
) -> CurrentUser:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Требуется авторизация")
    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.CUSTOMER
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Доступ запрещён")
    return CurrentUser(id=x_user_id, role=role)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Доступ запрещён")
    return user


def get_unit_of_work(db: AsyncSession = Depends(get_db)):
    return UnitOfWork(lambda: db)


# Фабрики для создания use cases
def get_create_order_use_case(uow=Depends(get_unit_of_work)):
    return CreateOrderUseCase(uow)


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_list_user_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListUserOrdersUseCase(uow)


def get_list_all_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListAllOrdersUseCase(uow)


def get_cancel_order_use_case(uow=Depends(get_unit_of_work)):
    return CancelOrderUseCase(uow)


def get_update_order_status_use_case(uow=Depends(get_unit_of_work)):
    return UpdateOrderStatusUseCase(uow, strict_transitions=settings.STRICT_STATUS_TRANSITIONS)


def get_get_cart_use_case(uow=Depends(get_unit_of_work)):
    return GetCartUseCase(uow)


def get_add_to_cart_use_case(uow=Depends(get_unit_of_work)):
    return AddToCartUseCase(uow)


def get_update_cart_item_use_case(uow=Depends(get_unit_of_work)):
    return UpdateCartItemUseCase(uow)


def get_remove_from_cart_use_case(uow=Depends(get_unit_of_work)):
    return RemoveFromCartUseCase(uow)


def get_clear_cart_use_case(uow=Depends(get_unit_of_work)):
    return ClearCartUseCase(uow)


def get_list_products_use_case(uow=Depends(get_unit_of_work)):
    return ListProductsUseCase(uow)


def get_list_featured_products_use_case(uow=Depends(get_unit_of_work)):
    return ListFeaturedProductsUseCase(uow)


def get_get_product_use_case(uow=Depends(get_unit_of_work)):
    return GetProductUseCase(uow)


def get_create_product_use_case(uow=Depends(get_unit_of_work)):
    return CreateProductUseCase(uow)


def get_update_product_use_case(uow=Depends(get_unit_of_work)):
    return UpdateProductUseCase(uow)


def get_deactivate_product_use_case(uow=Depends(get_unit_of_work)):
    return DeactivateProductUseCase(uow)
