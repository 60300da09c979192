"""Application service: List Orders use case (query).

Admins see every order; customers only their own.  Results are newest
first and paginated.
"""

from __future__ import annotations

import math

from storefront.application.dto import OrderPageDTO, order_to_dto
from storefront.domain.exceptions import ValidationError
from storefront.domain.model.order import OrderStatus, PaymentStatus
from storefront.domain.model.principal import Principal
from storefront.domain.repository.order_repository import OrderRepository

DEFAULT_PAGE_SIZE = 10


class ListOrdersHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(
        self,
        principal: Principal,
        status: str | None = None,
        payment_status: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> OrderPageDTO:
        page = max(page, 1)
        limit = limit if limit > 0 else DEFAULT_PAGE_SIZE

        filters = {
            "user_id": None if principal.is_admin else principal.user_id,
            "status": _parse(OrderStatus, status, "order status"),
            "payment_status": _parse(PaymentStatus, payment_status, "payment status"),
        }
        total = self._order_repo.count(**filters)
        orders = self._order_repo.search(**filters, skip=(page - 1) * limit, limit=limit)

        total_pages = math.ceil(total / limit)
        return OrderPageDTO(
            orders=[order_to_dto(o) for o in orders],
            total=total,
            page=page,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


def _parse(enum_cls, value: str | None, label: str):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}.") from None
