"""Catalog storage port."""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.product import Product


class ProductRepository(ABC):
    """Products keyed by id, with SKU as a unique, case-insensitive alternate key."""

    @abstractmethod
    def get_by_id(self, product_id: str) -> Product | None: ...

    @abstractmethod
    def get_by_sku(self, sku: str) -> Product | None: ...

    @abstractmethod
    def list_all(self) -> list[Product]:
        """Every product, newest first."""

    @abstractmethod
    def next_id(self) -> str:
        """An id no stored product uses yet."""

    @abstractmethod
    def save(self, product: Product) -> None: ...

    @abstractmethod
    def delete(self, product_id: str) -> bool:
        """Remove a product; False when there was nothing to remove."""
