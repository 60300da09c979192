"""Abstract repository for the Cart aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.cart import Cart


class CartRepository(ABC):

    @abstractmethod
    def get_for_user(self, user_id: str) -> Cart | None:
        """Return the user's cart, or None if they never had one."""

    @abstractmethod
    def list_pending_clear(self) -> list[Cart]:
        """Carts still carrying a checkout pending-clear marker."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        """Persist the cart, replacing the user's previous one."""
