"""Application service: Create Product use case."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from storefront.application.dto import ProductDTO, product_to_dto
from storefront.domain.exceptions import DuplicateProductError, ValidationError
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.product_repository import ProductRepository

logger = logging.getLogger(__name__)

DUPLICATE_SKU_MESSAGE = "Product with this SKU already exists."


def parse_price(value: str | None) -> Money | None:
    """Catalog prices may be zero but never negative or unparseable."""
    if value is None or not str(value).strip():
        return None
    try:
        return Money.of(value)
    except ValidationError:
        raise ValidationError("Price must be a positive number.", price=value) from None


class AddProductHandler:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(
        self,
        sku: str,
        name: str,
        price: str | None,
        category: str,
        image: str,
        description: str | None = None,
        images: Iterable[str] = (),
    ) -> ProductDTO:
        product = Product.create(
            product_id=self._product_repo.next_id(),
            sku=sku,
            name=name,
            price=parse_price(price),
            category=category,
            image=image,
            description=description,
            images=images,
        )
        if self._product_repo.get_by_sku(product.sku) is not None:
            raise DuplicateProductError(DUPLICATE_SKU_MESSAGE, sku=product.sku)

        self._product_repo.save(product)
        logger.info("Product %s (%s) created at %s", product.id, product.sku, product.price)
        return product_to_dto(product)
