"""Application service: Update Order use case (admin override).

This is the administrative escape hatch behind the generic "update order"
endpoint.  Unlike the dedicated lifecycle handlers it does not walk the
transition graph: any known status is accepted, with these limits:

- unknown status values are rejected;
- lifecycle timestamps are stamped only the first time a status is entered;
- every override lands in the order history with ``via="override"`` and is
  logged at WARNING, with an extra note when the status / payment-status
  pair ends up outside ``COMPATIBLE_PAYMENT_STATUSES``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from storefront.application.dto import OrderDTO, order_to_dto
from storefront.application.order_lookup import load_order
from storefront.domain.exceptions import ValidationError
from storefront.domain.model.order import OrderStatus
from storefront.domain.model.principal import Principal, require_admin
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class UpdateOrderHandler:

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
        status: str | None = None,
        tracking_number: str | None = None,
        admin_notes: str | None = None,
        note: str = "",
    ) -> OrderDTO:
        require_admin(principal, "update order status")
        order = load_order(self._order_repo, order_ref)
        now = self._clock()

        if status:
            try:
                new_status = OrderStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid order status: {status}.") from None

            previous = order.status
            order.override_status(new_status, at=now, actor=principal.user_id, note=note)
            logger.warning(
                "Admin %s overrode status of order %s: %s -> %s",
                principal.user_id,
                order.order_number,
                previous.value,
                new_status.value,
            )
            if not order.statuses_consistent:
                logger.warning(
                    "Order %s now has status %s with payment status %s",
                    order.order_number,
                    order.status.value,
                    order.payment_status.value,
                )

        order.update_metadata(
            tracking_number=tracking_number,
            admin_notes=admin_notes,
            at=now,
        )
        self._order_repo.save(order)
        return order_to_dto(order)
