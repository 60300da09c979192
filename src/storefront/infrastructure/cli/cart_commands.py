"""CLI commands for the Cart aggregate."""

from __future__ import annotations

import click

from storefront.application.add_cart_item import AddCartItemHandler
from storefront.application.clear_cart import ClearCartHandler
from storefront.application.dto import CartDTO
from storefront.application.reconcile_carts import ReconcileCartsHandler
from storefront.application.remove_cart_item import RemoveCartItemHandler
from storefront.application.show_cart import ShowCartHandler
from storefront.application.update_cart_item import UpdateCartItemHandler
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.bootstrap import (
    cart_repository,
    order_repository,
    product_repository,
)
from storefront.infrastructure.cli.common import as_principal, caller_options, fail


def _display_cart(dto: CartDTO) -> None:
    if not dto.items:
        click.echo("Cart is empty.")
        return

    click.echo(f"  {'Item':<14} {'Product':<10} {'Variant':<14} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*68}")
    for item in dto.items:
        variant = "/".join(v for v in (item.color, item.size) if v) or "-"
        click.echo(
            f"  {item.id:<14} {item.product_id:<10} {variant:<14} {item.quantity:>5} "
            f"{item.unit_price:>10} {item.line_total:>10}"
        )
    click.echo(f"  {'-'*68}")
    click.echo(f"  {dto.total_items} item(s){'':<40} {dto.total_amount:>16}")


@click.command("show")
@caller_options
def cart_show(user_id: str, admin: bool) -> None:
    """Show the caller's cart."""
    handler = ShowCartHandler(cart_repo=cart_repository())
    _display_cart(handler.handle(as_principal(user_id, admin)))


@click.command("add")
@caller_options
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--qty", "quantity", default=1, show_default=True, type=int)
@click.option("--price", default=None, help="Unit price (defaults to the catalog price).")
@click.option("--color", default=None)
@click.option("--size", default=None)
def cart_add(
    user_id: str, admin: bool, product_id: str, quantity: int,
    price: str | None, color: str | None, size: str | None,
) -> None:
    """Add a product to the caller's cart."""
    handler = AddCartItemHandler(
        cart_repo=cart_repository(),
        product_repo=product_repository(),
    )

    try:
        dto = handler.handle(
            as_principal(user_id, admin), product_id, quantity,
            price=price, color=color, size=size,
        )
    except DomainException as exc:
        raise fail(exc)

    _display_cart(dto)


@click.command("update")
@caller_options
@click.option("--item", "item_id", required=True, help="Cart item ID.")
@click.option("--qty", "quantity", default=None, type=int)
@click.option("--color", default=None, help="New color ('' clears it).")
@click.option("--size", default=None, help="New size ('' clears it).")
def cart_update(
    user_id: str, admin: bool, item_id: str, quantity: int | None,
    color: str | None, size: str | None,
) -> None:
    """Change quantity or variant of a cart line."""
    handler = UpdateCartItemHandler(cart_repo=cart_repository())

    try:
        dto = handler.handle(
            as_principal(user_id, admin), item_id,
            quantity=quantity, color=color, size=size,
        )
    except DomainException as exc:
        raise fail(exc)

    _display_cart(dto)


@click.command("remove")
@caller_options
@click.option("--item", "item_id", required=True, help="Cart item ID.")
def cart_remove(user_id: str, admin: bool, item_id: str) -> None:
    """Remove a line from the caller's cart."""
    handler = RemoveCartItemHandler(cart_repo=cart_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), item_id)
    except DomainException as exc:
        raise fail(exc)

    _display_cart(dto)


@click.command("clear")
@caller_options
def cart_clear(user_id: str, admin: bool) -> None:
    """Empty the caller's cart."""
    handler = ClearCartHandler(cart_repo=cart_repository())

    try:
        handler.handle(as_principal(user_id, admin))
    except DomainException as exc:
        raise fail(exc)

    click.echo("Cart cleared.")


@click.command("reconcile")
@caller_options
def cart_reconcile(user_id: str, admin: bool) -> None:
    """Finish or roll back checkouts interrupted between order and cart writes (admin)."""
    handler = ReconcileCartsHandler(
        cart_repo=cart_repository(),
        order_repo=order_repository(),
    )

    try:
        report = handler.handle(as_principal(user_id, admin))
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Cleared {len(report.cleared)} cart(s), released {len(report.released)}.")
