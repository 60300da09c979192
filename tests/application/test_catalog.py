"""Tests for the catalog use cases."""

from datetime import datetime, timedelta, timezone

import pytest

from storefront.application.add_product import AddProductHandler
from storefront.application.delete_product import DeleteProductHandler
from storefront.application.list_products import ListProductsHandler, ShowProductHandler
from storefront.application.update_product import UpdateProductHandler
from storefront.domain.exceptions import (
    DuplicateProductError,
    EntityNotFoundError,
    ValidationError,
)
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money
from tests.fakes import FakeProductRepository

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _add(repo, sku="TS-1", name="T-shirt", price="25.00", category="tops", image="ts.png", **kw):
    return AddProductHandler(repo).handle(
        sku=sku, name=name, price=price, category=category, image=image, **kw
    )


def _catalog() -> FakeProductRepository:
    rows = [
        ("1", "TS-1", "T-shirt", "25.00", "tops"),
        ("2", "MUG-1", "Mug", "9.50", "kitchen"),
        ("3", "HD-1", "Hoodie", "59.00", "tops"),
        ("4", "CAP-1", "Cap", "12.25", "hats"),
        ("5", "PLT-1", "Plate", "9.00", "kitchen"),
    ]
    return FakeProductRepository([
        Product(
            id=pid, sku=sku, name=name, price=Money.of(price), category=cat,
            image=f"{sku}.png", created_at=T0 + timedelta(minutes=int(pid)),
        )
        for pid, sku, name, price, cat in rows
    ])


class TestAddProduct:

    def test_fields_trimmed_and_ids_assigned(self):
        repo = FakeProductRepository()
        first = _add(repo)
        second = _add(repo, sku=" MUG-1 ", name=" Mug ", category=" kitchen ",
                      images=[" a.png ", "b.png"], description="  Holds coffee ")

        assert (first.id, second.id) == ("1", "2")
        stored = repo.get_by_sku("mug-1")
        assert (stored.sku, stored.name, stored.category) == ("MUG-1", "Mug", "kitchen")
        assert stored.images == ["a.png", "b.png"]
        assert stored.description == "Holds coffee"

    def test_zero_price_allowed(self):
        assert _add(FakeProductRepository(), price="0").price == "$0.00"

    def test_duplicate_sku_rejected(self):
        repo = FakeProductRepository()
        _add(repo)
        with pytest.raises(DuplicateProductError, match="SKU already exists") as exc_info:
            _add(repo, sku="ts-1", name="Other")
        assert exc_info.value.http_status == 409
        assert len(repo.list_all()) == 1

    @pytest.mark.parametrize("field", ["sku", "name", "category", "image"])
    def test_required_text_fields(self, field):
        with pytest.raises(ValidationError, match="are required fields"):
            _add(FakeProductRepository(), **{field: "  "})

    def test_price_required(self):
        with pytest.raises(ValidationError, match="are required fields"):
            _add(FakeProductRepository(), price=None)

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match="Price must be a positive number"):
            _add(FakeProductRepository(), price="-1")


class TestUpdateProduct:

    def test_partial_update(self):
        repo = _catalog()
        dto = UpdateProductHandler(repo).handle("1", price="29.99", name="Tee")

        assert (dto.name, dto.price, dto.sku) == ("Tee", "$29.99", "TS-1")
        assert repo.get_by_id("1").price == Money.of("29.99")

    def test_blank_fields_left_alone(self):
        repo = _catalog()
        UpdateProductHandler(repo).handle("1", name=" ", category="")
        assert (repo.get_by_id("1").name, repo.get_by_id("1").category) == ("T-shirt", "tops")

    def test_description_and_images_can_be_cleared(self):
        repo = _catalog()
        product = repo.get_by_id("2")
        product.revise(description="Big", images=["x.png"])
        UpdateProductHandler(repo).handle("2", description="", images=[])
        assert (product.description, product.images) == ("", [])

    def test_sku_taken_by_another_product(self):
        with pytest.raises(DuplicateProductError):
            UpdateProductHandler(_catalog()).handle("1", sku="mug-1")

    def test_keeping_own_sku_is_fine(self):
        assert UpdateProductHandler(_catalog()).handle("1", sku="TS-1").sku == "TS-1"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match="Price must be a positive number"):
            UpdateProductHandler(_catalog()).handle("1", price="-5")

    def test_unknown_product(self):
        with pytest.raises(EntityNotFoundError, match="Product not found"):
            UpdateProductHandler(FakeProductRepository()).handle("7", price="1.00")


class TestDeleteProduct:

    def test_deleted(self):
        repo = _catalog()
        DeleteProductHandler(repo).handle("3")
        assert repo.get_by_id("3") is None

    def test_unknown_product(self):
        with pytest.raises(EntityNotFoundError):
            DeleteProductHandler(_catalog()).handle("99")


class TestListProducts:

    def test_newest_first_with_default_page_size(self):
        page = ListProductsHandler(_catalog()).handle()

        assert [p.id for p in page.products] == ["5", "4", "3", "2"]
        assert (page.total, page.total_pages) == (5, 2)
        assert page.has_next_page and not page.has_prev_page

    def test_second_page(self):
        page = ListProductsHandler(_catalog()).handle(page=2)
        assert [p.id for p in page.products] == ["1"]
        assert page.has_prev_page and not page.has_next_page

    def test_category_filter(self):
        page = ListProductsHandler(_catalog()).handle(category="kitchen")
        assert [p.sku for p in page.products] == ["PLT-1", "MUG-1"]

    def test_search_by_name_or_category(self):
        handler = ListProductsHandler(_catalog())
        assert [p.sku for p in handler.handle(search="HOOD").products] == ["HD-1"]
        assert handler.handle(search="tops").total == 2

    def test_numeric_search_matches_price(self):
        page = ListProductsHandler(_catalog()).handle(search="9.5")
        assert [p.sku for p in page.products] == ["MUG-1"]


class TestShowProduct:

    def test_by_id_and_sku(self):
        handler = ShowProductHandler(_catalog())
        assert handler.handle(product_id="2").name == "Mug"
        assert handler.handle(sku="cap-1").id == "4"

    def test_missing(self):
        with pytest.raises(EntityNotFoundError, match="Product not found"):
            ShowProductHandler(_catalog()).handle(product_id="42")
