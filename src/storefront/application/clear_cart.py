"""Application service: Clear Cart use case."""

from __future__ import annotations

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.model.principal import Principal
from storefront.domain.repository.cart_repository import CartRepository


class ClearCartHandler:

    def __init__(self, cart_repo: CartRepository) -> None:
        self._cart_repo = cart_repo

    def handle(self, principal: Principal) -> CartDTO:
        cart = self._cart_repo.get_for_user(principal.user_id)
        if cart is None:
            raise EntityNotFoundError("Cart not found.")
        cart.clear()
        self._cart_repo.save(cart)
        return cart_to_dto(cart)
