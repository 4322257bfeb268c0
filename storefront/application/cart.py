import logging
import uuid

from storefront.domain.models import Cart, CartView, build_cart_view, utcnow
from storefront.domain.exceptions import ProductUnavailableError, CartItemNotFoundError

logger = logging.getLogger(__name__)


async def get_or_create_cart(uow, user_id: str) -> Cart:
    """Корзина создаётся лениво при первом обращении"""
    cart = await uow.carts.get_by_user(user_id)
    if cart:
        return cart
    now = utcnow()
    cart = Cart(id=str(uuid.uuid4()), user_id=user_id, items=[], created_at=now, updated_at=now)
    await uow.carts.create(cart)
    logger.info(f"Создана корзина для пользователя {user_id}")
    return cart


async def materialize_cart(uow, cart: Cart) -> CartView:
    """Сверяет корзину с каталогом: удаляет недоступные товары и сохраняет результат.

    Итоги считаются заново по текущим ценам и не сохраняются.
    """
    products = await uow.products.get_many([item.product_id for item in cart.items])
    removed = cart.prune(products)
    if removed:
        await uow.carts.save(cart)
        logger.info(
            f"Из корзины пользователя {cart.user_id} удалены недоступные товары: "
            f"{[item.product_id for item in removed]}"
        )
    return build_cart_view(cart, products)


async def get_available_product(uow, product_id: str):
    product = await uow.products.get_by_id(product_id)
    if not product or not product.is_available():
        raise ProductUnavailableError(product_id)
    return product


class GetCartUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> CartView:
        async with self._uow() as uow:
            cart = await get_or_create_cart(uow, user_id)
            view = await materialize_cart(uow, cart)
            await uow.commit()
        return view


class AddToCartUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str, product_id: str, quantity: int = 1) -> CartView:
        async with self._uow() as uow:
            product = await get_available_product(uow, product_id)
            cart = await get_or_create_cart(uow, user_id)
            cart.add_item(product, quantity)
            await uow.carts.save(cart)
            view = await materialize_cart(uow, cart)
            await uow.commit()

        logger.info(f"Товар {product_id} x{quantity} добавлен в корзину пользователя {user_id}")
        return view


class UpdateCartItemUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str, product_id: str, quantity: int) -> CartView:
        async with self._uow() as uow:
            cart = await get_or_create_cart(uow, user_id)
            if quantity == 0:
                if not cart.remove_item(product_id):
                    raise CartItemNotFoundError(product_id)
            else:
                if not cart.find_item(product_id):
                    raise CartItemNotFoundError(product_id)
                product = await get_available_product(uow, product_id)
                cart.update_item_quantity(product, quantity)
            await uow.carts.save(cart)
            view = await materialize_cart(uow, cart)
            await uow.commit()
        return view


class RemoveFromCartUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str, product_id: str) -> CartView:
        async with self._uow() as uow:
            cart = await get_or_create_cart(uow, user_id)
            if cart.remove_item(product_id):
                await uow.carts.save(cart)
            view = await materialize_cart(uow, cart)
            await uow.commit()
        return view


class ClearCartUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> None:
        async with self._uow() as uow:
            await uow.carts.clear(user_id)
            await uow.commit()
        logger.info(f"Корзина пользователя {user_id} очищена")
