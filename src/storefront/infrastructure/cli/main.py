import click

from storefront.infrastructure import config
from storefront.infrastructure.cli.cart_commands import (
    cart_add,
    cart_clear,
    cart_reconcile,
    cart_remove,
    cart_show,
    cart_update,
)
from storefront.infrastructure.cli.order_commands import (
    order_cancel,
    order_checkout,
    order_deliver,
    order_list,
    order_pay,
    order_prepare,
    order_refund,
    order_ship,
    order_show,
    order_update,
)
from storefront.infrastructure.cli.product_commands import (
    product_add,
    product_delete,
    product_list,
    product_show,
    product_update,
)
from storefront.infrastructure.logging_config import configure_logging


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(log_level: str | None) -> None:
    """Storefront: checkout and order ledger"""
    configure_logging(log_level or config.LOG_LEVEL)


@cli.group()
def order() -> None:
    """Check out and manage orders."""


@cli.group()
def cart() -> None:
    """Manage the shopping cart."""


@cli.group()
def product() -> None:
    """Manage the product catalog."""


# Register subcommands
order.add_command(order_cancel)
order.add_command(order_checkout)
order.add_command(order_deliver)
order.add_command(order_list)
order.add_command(order_pay)
order.add_command(order_prepare)
order.add_command(order_refund)
order.add_command(order_ship)
order.add_command(order_show)
order.add_command(order_update)
cart.add_command(cart_add)
cart.add_command(cart_clear)
cart.add_command(cart_reconcile)
cart.add_command(cart_remove)
cart.add_command(cart_show)
cart.add_command(cart_update)
product.add_command(product_add)
product.add_command(product_delete)
product.add_command(product_list)
product.add_command(product_show)
product.add_command(product_update)
