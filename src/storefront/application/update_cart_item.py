"""Application service: Update Cart Item use case."""

from __future__ import annotations

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.model.principal import Principal
from storefront.domain.model.value_objects import Quantity
from storefront.domain.repository.cart_repository import CartRepository


class UpdateCartItemHandler:

    def __init__(self, cart_repo: CartRepository) -> None:
        self._cart_repo = cart_repo

    def handle(
        self,
        principal: Principal,
        item_id: str,
        quantity: int | None = None,
        color: str | None = None,
        size: str | None = None,
    ) -> CartDTO:
        cart = self._cart_repo.get_for_user(principal.user_id)
        if cart is None:
            raise EntityNotFoundError("Cart not found.")

        cart.update_item(
            item_id,
            quantity=None if quantity is None else Quantity(quantity),
            color=color,
            size=size,
        )
        self._cart_repo.save(cart)
        return cart_to_dto(cart)
