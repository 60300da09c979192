"""Shared lookup for handlers that act on an existing order."""

from __future__ import annotations

from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.model.order import Order
from storefront.domain.repository.order_repository import OrderRepository


def load_order(order_repo: OrderRepository, order_ref: int | str) -> Order:
    """Find an order by numeric ID or by its ``ORD...`` number."""
    if isinstance(order_ref, int) or str(order_ref).isdigit():
        order = order_repo.get_by_id(int(order_ref))
    else:
        order = order_repo.get_by_order_number(str(order_ref))
    if order is None:
        raise EntityNotFoundError(f"Order {order_ref} not found")
    return order
