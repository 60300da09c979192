"""Application service: Cancel Order use case.

Owners may cancel their own orders; admins may cancel any order.  The
aggregate refuses orders that are already finished (delivered) or
terminated (cancelled, refunded).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.exceptions import PermissionDeniedError
from storefront.domain.model.principal import Principal
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class CancelOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def handle(self, principal: Principal, order_ref: int | str, reason: str = "") -> OrderDTO:
        order = load_order(self._order_repo, order_ref)

        if not principal.is_admin and not principal.owns(order.user_id):
            raise PermissionDeniedError("Access denied. You can only cancel your own orders.")

        order.cancel(reason or "", at=self._clock(), actor=principal.user_id)
        self._order_repo.save(order)

        logger.info("Order %s cancelled by %s", order.order_number, principal.user_id)
        return order_to_dto(order)
