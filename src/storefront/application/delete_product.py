"""Application service: Delete Product use case."""

from __future__ import annotations

import logging

from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.repository.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class DeleteProductHandler:
    """Remove a catalog entry.

    Lines already in carts stay; checkout rejects a cart that still
    references a deleted product, while the fallback path falls back to
    the client's copy of the product details.
    """

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(self, product_id: str) -> None:
        if not self._product_repo.delete(product_id):
            raise EntityNotFoundError("Product not found.", product_id=product_id)
        logger.info("Product %s deleted", product_id)
