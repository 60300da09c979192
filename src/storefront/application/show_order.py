"""Application service: Show Order use case (query)."""

from __future__ import annotations

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.exceptions import PermissionDeniedError
from storefront.domain.model.principal import Principal
from storefront.domain.repository.order_repository import OrderRepository


class ShowOrderHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(self, principal: Principal, order_ref: int | str) -> OrderDTO:
        order = load_order(self._order_repo, order_ref)
        if not principal.is_admin and not principal.owns(order.user_id):
            raise PermissionDeniedError("Access denied. You can only view your own orders.")
        return order_to_dto(order)
