"""Catalog entry.

Checkout copies name, SKU, image and price onto each order line, so
editing or deleting a product later leaves existing orders as they were.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.value_objects import Money


def _clean(value: str | None) -> str:
    return (value or "").strip()


@dataclass
class Product:
    id: str
    sku: str
    name: str
    price: Money
    category: str = ""
    image: str = ""
    images: list[str] = field(default_factory=list)
    description: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        product_id: str,
        sku: str | None,
        name: str | None,
        price: Money | None,
        category: str | None,
        image: str | None,
        description: str | None = None,
        images: Iterable[str] = (),
    ) -> Product:
        """Build a new catalog entry; every text field is trimmed."""
        fields = (_clean(sku), _clean(name), _clean(category), _clean(image))
        if price is None or not all(fields):
            raise ValidationError(
                "SKU, name, price, category, and image are required fields."
            )
        sku, name, category, image = fields
        return cls(
            id=product_id,
            sku=sku,
            name=name,
            price=price,
            category=category,
            image=image,
            images=[_clean(url) for url in images],
            description=_clean(description),
        )

    @property
    def main_image(self) -> str:
        """The image shown for this product; falls back to the gallery."""
        if self.image:
            return self.image
        return self.images[0] if self.images else ""

    def revise(
        self,
        *,
        sku: str | None = None,
        name: str | None = None,
        price: Money | None = None,
        category: str | None = None,
        image: str | None = None,
        description: str | None = None,
        images: Iterable[str] | None = None,
    ) -> None:
        """Apply a partial edit.

        Blank values for the required text fields are ignored rather than
        wiping them.  ``description=""`` and ``images=[]`` do clear.
        """
        if _clean(sku):
            self.sku = _clean(sku)
        if _clean(name):
            self.name = _clean(name)
        if price is not None:
            self.price = price
        if _clean(category):
            self.category = _clean(category)
        if _clean(image):
            self.image = _clean(image)
        if description is not None:
            self.description = _clean(description)
        if images is not None:
            self.images = [_clean(url) for url in images]

    def matches(self, search: str) -> bool:
        """Case-insensitive match on name or category, or on the price digits."""
        term = search.strip().lower()
        if not term:
            return True
        if term in self.name.lower() or term in self.category.lower():
            return True
        return _is_number(term) and term in str(self.price.amount)


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True
