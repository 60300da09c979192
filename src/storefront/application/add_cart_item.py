"""Application service: Add Cart Item use case."""

from __future__ import annotations

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.model.cart import Cart
from storefront.domain.model.principal import Principal
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.product_repository import ProductRepository


class AddCartItemHandler:

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
    ) -> None:
        self._cart_repo = cart_repo
        self._product_repo = product_repo

    def handle(
        self,
        principal: Principal,
        product_id: str,
        quantity: int,
        price: str | None = None,
        color: str | None = None,
        size: str | None = None,
    ) -> CartDTO:
        """Put a product in the user's cart.

        ``price`` is the price shown to the customer; it defaults to the
        current catalog price.
        """
        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise EntityNotFoundError("Product not found.")

        unit_price = product.price if price is None else Money.of(price)
        cart = self._cart_repo.get_for_user(principal.user_id) or Cart(
            user_id=principal.user_id
        )
        cart.add_item(product.id, Quantity(quantity), unit_price, color, size)
        self._cart_repo.save(cart)
        return cart_to_dto(cart)
