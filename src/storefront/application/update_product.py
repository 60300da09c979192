"""Application service: Update Product use case.

Only the fields passed are changed.  Orders and cart lines keep the
price and names they captured, whatever happens here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from storefront.application.add_product import DUPLICATE_SKU_MESSAGE, parse_price
from storefront.application.dto import ProductDTO, product_to_dto
from storefront.domain.exceptions import DuplicateProductError, EntityNotFoundError
from storefront.domain.repository.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class UpdateProductHandler:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(
        self,
        product_id: str,
        sku: str | None = None,
        name: str | None = None,
        price: str | None = None,
        category: str | None = None,
        image: str | None = None,
        description: str | None = None,
        images: Iterable[str] | None = None,
    ) -> ProductDTO:
        product = self._product_repo.get_by_id(product_id)
        if product is None:
            raise EntityNotFoundError("Product not found.", product_id=product_id)

        if sku and sku.strip():
            holder = self._product_repo.get_by_sku(sku)
            if holder is not None and holder.id != product.id:
                raise DuplicateProductError(DUPLICATE_SKU_MESSAGE, sku=sku.strip())

        product.revise(
            sku=sku,
            name=name,
            price=parse_price(price),
            category=category,
            image=image,
            description=description,
            images=images,
        )
        self._product_repo.save(product)
        logger.info("Product %s updated", product.id)
        return product_to_dto(product)
