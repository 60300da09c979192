"""Application service: Complete Payment use case (admin)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.model.principal import Principal, require_admin
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class CompletePaymentHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def handle(
        self,
        principal: Principal,
        order_ref: int | str,
        payment_date: datetime | None = None,
    ) -> OrderDTO:
        """Mark an order's payment as received.

        ``payment_date`` defaults to now; offline settlements may supply the
        date the money actually arrived.
        """
        require_admin(principal, "complete payments")
        order = load_order(self._order_repo, order_ref)

        order.complete_payment(
            at=self._clock(), actor=principal.user_id, paid_at=payment_date
        )
        self._order_repo.save(order)

        logger.info("Payment completed for order %s by %s", order.order_number, principal.user_id)
        return order_to_dto(order)
