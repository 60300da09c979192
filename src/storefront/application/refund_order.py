"""Application service: Refund Order use case (admin).

Records the refund on the order.  Moving the money back is the payment
processor's job and happens outside this service.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.model.principal import Principal, require_admin
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class RefundOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def handle(self, principal: Principal, order_ref: int | str, reason: str = "") -> OrderDTO:
        require_admin(principal, "process refunds")
        order = load_order(self._order_repo, order_ref)

        order.refund(reason or "", at=self._clock(), actor=principal.user_id)
        self._order_repo.save(order)

        logger.info("Order %s refunded by %s", order.order_number, principal.user_id)
        return order_to_dto(order)
