"""Application service: Start Preparing use case (admin)."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.model.principal import Principal, require_admin
from storefront.domain.repository.order_repository import OrderRepository


class StartPreparingHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def handle(self, principal: Principal, order_ref: int | str) -> OrderDTO:
        require_admin(principal, "prepare orders")
        order = load_order(self._order_repo, order_ref)
        order.start_preparing(at=self._clock(), actor=principal.user_id)
        self._order_repo.save(order)
        return order_to_dto(order)
