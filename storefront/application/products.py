import logging
import uuid
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from storefront.domain.models import Product, ProductFilter, utcnow
from storefront.domain.exceptions import ProductNotFoundError

logger = logging.getLogger(__name__)

NULLABLE_FIELDS = ("description", "image")


class ProductsPage(BaseModel):
    products: list[Product]
    total: int
    page: int
    limit: int


class CreateProductDTO(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, decimal_places=2)
    stock: int = Field(0, ge=0)
    image: Optional[str] = None
    featured: bool = False
    is_active: bool = True


class UpdateProductDTO(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None
    featured: Optional[bool] = None
    is_active: Optional[bool] = None


class ListProductsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, page: int = 1, limit: int = 20, filters: Optional[ProductFilter] = None) -> ProductsPage:
        filters = filters or ProductFilter()
        async with self._uow() as uow:
            products = await uow.products.list(filters, offset=(page - 1) * limit, limit=limit)
            total = await uow.products.count(filters)
        return ProductsPage(products=products, total=total, page=page, limit=limit)


class ListFeaturedProductsUseCase:
    """Рекомендуемые товары в наличии, новые первыми"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, limit: int = 8) -> list[Product]:
        filters = ProductFilter(featured=True, in_stock=True, sort="-created_at")
        async with self._uow() as uow:
            return await uow.products.list(filters, limit=limit)


class GetProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str, include_inactive: bool = False) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
        if not product or (not product.is_active and not include_inactive):
            raise ProductNotFoundError(f"Товар {product_id} не найден")
        return product


class CreateProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CreateProductDTO) -> Product:
        now = utcnow()
        product = Product(id=str(uuid.uuid4()), created_at=now, updated_at=now, **dto.model_dump())
        async with self._uow() as uow:
            await uow.products.create(product)
            await uow.commit()
        logger.info(f"Товар создан: {product.name} ({product.id})")
        return product


class UpdateProductUseCase:
    """Частичное обновление товара. Уже оформленные заказы не затрагиваются."""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str, dto: UpdateProductDTO) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(f"Товар {product_id} не найден")
            # null допустим только для необязательных полей
            changes = {
                field: value
                for field, value in dto.model_dump(exclude_unset=True).items()
                if value is not None or field in NULLABLE_FIELDS
            }
            product = Product.model_validate({**product.model_dump(), **changes, "updated_at": utcnow()})
            await uow.products.update(product)
            await uow.commit()
        logger.info(f"Товар {product_id} обновлён: {sorted(changes)}")
        return product


class DeactivateProductUseCase:
    """Мягкое удаление: товар становится неактивным, запись остаётся"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(f"Товар {product_id} не найден")
            product.is_active = False
            product.updated_at = utcnow()
            await uow.products.update(product)
            await uow.commit()
        logger.info(f"Товар {product_id} деактивирован")
        return product
