"""Application service: catalog queries.

``ListProductsHandler`` pages through the catalog, newest first, optionally
narrowed by category and a free-text search.  ``ShowProductHandler``
fetches one product by id or SKU.
"""

from __future__ import annotations

import math

from storefront.application.dto import ProductDTO, ProductPageDTO, product_to_dto
from storefront.domain.exceptions import EntityNotFoundError
from storefront.domain.repository.product_repository import ProductRepository

DEFAULT_PAGE_SIZE = 4


class ListProductsHandler:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(
        self,
        category: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ProductPageDTO:
        page = max(page, 1)
        limit = limit if limit > 0 else DEFAULT_PAGE_SIZE

        products = self._product_repo.list_all()
        if category and category.strip():
            products = [p for p in products if p.category == category.strip()]
        if search:
            products = [p for p in products if p.matches(search)]

        total = len(products)
        total_pages = math.ceil(total / limit)
        start = (page - 1) * limit
        return ProductPageDTO(
            products=[product_to_dto(p) for p in products[start:start + limit]],
            total=total,
            page=page,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class ShowProductHandler:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    def handle(self, product_id: str | None = None, sku: str | None = None) -> ProductDTO:
        if sku:
            product = self._product_repo.get_by_sku(sku)
        else:
            product = self._product_repo.get_by_id(product_id or "")
        if product is None:
            raise EntityNotFoundError("Product not found.")
        return product_to_dto(product)
