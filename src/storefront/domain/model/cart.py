"""Cart aggregate: one mutable shopping cart per user.

The item list is the source of truth.  ``total_items`` and
``total_amount`` are caches that every mutation recomputes, so they are
never edited directly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.model.value_objects import Money, Quantity


def _new_item_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class CartItem:
    id: str
    product_id: str
    quantity: Quantity
    unit_price: Money
    color: str | None = None
    size: str | None = None

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value

    def matches(self, product_id: str, color: str | None, size: str | None) -> bool:
        return (
            self.product_id == product_id
            and self.color == color
            and self.size == size
        )


@dataclass
class Cart:
    """Aggregate root for a user's cart.

    ``pending_clear_order`` is set while a checkout that consumed this cart
    is being persisted.  If the process dies between the order insert and
    the cart clear, the marker tells the reconciliation sweep which order
    the cart belongs to.
    """

    user_id: str
    items: list[CartItem] = field(default_factory=list)
    total_items: int = 0
    total_amount: Money = field(default_factory=Money.zero)
    pending_clear_order: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not self.items

    # --- Mutations ------------------------------------------------------------

    def add_item(
        self,
        product_id: str,
        quantity: Quantity,
        unit_price: Money,
        color: str | None = None,
        size: str | None = None,
    ) -> CartItem:
        """Add a line, merging with an existing one of the same variant.

        On merge the quantity accumulates and the price is refreshed to the
        latest value supplied.
        """
        color = color or None
        size = size or None
        for item in self.items:
            if item.matches(product_id, color, size):
                item.quantity = item.quantity + quantity
                item.unit_price = unit_price
                self._recalculate()
                return item

        item = CartItem(
            id=_new_item_id(),
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            color=color,
            size=size,
        )
        self.items.append(item)
        self._recalculate()
        return item

    def update_item(
        self,
        item_id: str,
        quantity: Quantity | None = None,
        color: str | None = None,
        size: str | None = None,
    ) -> CartItem:
        """Change quantity and/or variant of one line.

        ``None`` leaves a field untouched; an empty string clears a variant.
        """
        item = self._find_item(item_id)
        if quantity is not None:
            item.quantity = quantity
        if color is not None:
            item.color = color or None
        if size is not None:
            item.size = size or None
        self._recalculate()
        return item

    def remove_item(self, item_id: str) -> None:
        self.items = [item for item in self.items if item.id != item_id]
        self._recalculate()

    def clear(self) -> None:
        self.items = []
        self.pending_clear_order = None
        self._recalculate()

    # --- Checkout compensation marker ----------------------------------------

    def mark_pending_clear(self, order_number: str) -> None:
        self.pending_clear_order = order_number
        self._touch()

    def release_pending_clear(self) -> None:
        self.pending_clear_order = None
        self._touch()

    # --- Internal helpers -----------------------------------------------------

    def _find_item(self, item_id: str) -> CartItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise EntityNotFoundError("Item not found in cart.")

    def _recalculate(self) -> None:
        self.total_items = sum(item.quantity.value for item in self.items)
        self.total_amount = Money.total(item.line_total for item in self.items).rounded()
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
