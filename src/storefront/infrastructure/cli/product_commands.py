"""CLI commands for the product catalog."""

from __future__ import annotations

import click

from storefront.application.add_product import AddProductHandler
from storefront.application.delete_product import DeleteProductHandler
from storefront.application.dto import ProductDTO
from storefront.application.list_products import ListProductsHandler, ShowProductHandler
from storefront.application.update_product import UpdateProductHandler
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.bootstrap import product_repository
from storefront.infrastructure.cli.common import fail


@click.command("add")
@click.option("--sku", required=True, help="Stock keeping unit, unique.")
@click.option("--name", required=True, help="Product name.")
@click.option("--price", required=True, help="Price (e.g. 15.00).")
@click.option("--category", required=True, help="Catalog category.")
@click.option("--image", required=True, help="Main image URL.")
@click.option("--description", default=None, help="Long description.")
@click.option("--gallery", multiple=True, help="Extra image URL (repeatable).")
def product_add(
    sku: str,
    name: str,
    price: str,
    category: str,
    image: str,
    description: str | None,
    gallery: tuple[str, ...],
) -> None:
    """Add a product to the catalog."""
    handler = AddProductHandler(product_repo=product_repository())
    try:
        product = handler.handle(
            sku=sku,
            name=name,
            price=price,
            category=category,
            image=image,
            description=description,
            images=gallery,
        )
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Product #{product.id} '{product.name}' ({product.sku}) added at {product.price}")


@click.command("list")
@click.option("--category", default=None, help="Only this category.")
@click.option("--search", default=None, help="Match name, category or price.")
@click.option("--page", default=1, type=int, show_default=True)
@click.option("--limit", default=4, type=int, show_default=True)
def product_list(category: str | None, search: str | None, page: int, limit: int) -> None:
    """List the catalog, newest first."""
    result = ListProductsHandler(product_repo=product_repository()).handle(
        category=category, search=search, page=page, limit=limit
    )
    if not result.products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6} {'SKU':<12} {'Name':<20} {'Category':<12} {'Price':>10}")
    click.echo("-" * 64)
    for p in result.products:
        click.echo(f"{p.id:<6} {p.sku:<12} {p.name:<20} {p.category:<12} {p.price:>10}")
    click.echo(f"\nPage {result.page}/{result.total_pages} ({result.total} product(s))")


@click.command("show")
@click.option("--id", "product_id", default=None, help="Product ID.")
@click.option("--sku", default=None, help="Look up by SKU instead.")
def product_show(product_id: str | None, sku: str | None) -> None:
    """Show one product."""
    if not product_id and not sku:
        raise click.UsageError("Pass --id or --sku.")
    try:
        product = ShowProductHandler(product_repo=product_repository()).handle(
            product_id=product_id, sku=sku
        )
    except DomainException as exc:
        raise fail(exc)
    _display_product(product)


@click.command("update")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.option("--sku", default=None)
@click.option("--name", default=None)
@click.option("--price", default=None, help="New price (e.g. 29.99).")
@click.option("--category", default=None)
@click.option("--image", default=None)
@click.option("--description", default=None)
def product_update(
    product_id: str,
    sku: str | None,
    name: str | None,
    price: str | None,
    category: str | None,
    image: str | None,
    description: str | None,
) -> None:
    """Change some fields of a product."""
    handler = UpdateProductHandler(product_repo=product_repository())
    try:
        product = handler.handle(
            product_id,
            sku=sku,
            name=name,
            price=price,
            category=category,
            image=image,
            description=description,
        )
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Product #{product.id} updated.")
    _display_product(product)


@click.command("delete")
@click.option("--id", "product_id", required=True, help="Product ID.")
def product_delete(product_id: str) -> None:
    """Remove a product from the catalog."""
    try:
        DeleteProductHandler(product_repo=product_repository()).handle(product_id)
    except DomainException as exc:
        raise fail(exc)
    click.echo(f"Product #{product_id} deleted.")


def _display_product(product: ProductDTO) -> None:
    click.echo(f"  #{product.id}  {product.sku}  {product.name}")
    click.echo(f"  Price:    {product.price}")
    click.echo(f"  Category: {product.category}")
    click.echo(f"  Image:    {product.image}")
    if product.description:
        click.echo(f"  {product.description}")
