"""Application service: Reconcile Carts (compensation sweep).

Checkout marks the cart with the order number before inserting the order
and clears it afterwards.  A cart still carrying the marker means the
process stopped somewhere in between:

- the order exists   -> the clear never happened; clear the cart now;
- the order is absent -> the insert never happened; drop the marker and
  keep the items.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from storefront.domain.model.principal import Principal, require_admin
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileReport:
    cleared: list[str]
    released: list[str]


class ReconcileCartsHandler:

    def __init__(
        self,
        cart_repo: CartRepository,
        order_repo: OrderRepository,
    ) -> None:
        self._cart_repo = cart_repo
        self._order_repo = order_repo

    def handle(self, principal: Principal) -> ReconcileReport:
        require_admin(principal, "reconcile carts")
        cleared: list[str] = []
        released: list[str] = []

        for cart in self._cart_repo.list_pending_clear():
            order_number = cart.pending_clear_order
            if self._order_repo.exists_order_number(order_number):  # type: ignore[arg-type]
                cart.clear()
                cleared.append(cart.user_id)
                logger.info("Cleared cart of user %s for order %s", cart.user_id, order_number)
            else:
                cart.release_pending_clear()
                released.append(cart.user_id)
                logger.info(
                    "Released cart of user %s; order %s was never stored",
                    cart.user_id,
                    order_number,
                )
            self._cart_repo.save(cart)

        return ReconcileReport(cleared=cleared, released=released)
