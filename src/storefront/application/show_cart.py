"""Application service: Show Cart use case.

A user without a cart gets an empty one created on first look.
"""

from __future__ import annotations

from storefront.application.dto import CartDTO, cart_to_dto
from storefront.domain.model.cart import Cart
from storefront.domain.model.principal import Principal
from storefront.domain.repository.cart_repository import CartRepository


class ShowCartHandler:

    def __init__(self, cart_repo: CartRepository) -> None:
        self._cart_repo = cart_repo

    def handle(self, principal: Principal) -> CartDTO:
        cart = self._cart_repo.get_for_user(principal.user_id)
        if cart is None:
            cart = Cart(user_id=principal.user_id)
            self._cart_repo.save(cart)
        return cart_to_dto(cart)
