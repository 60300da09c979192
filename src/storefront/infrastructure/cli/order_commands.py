"""CLI commands for the Order aggregate."""

from __future__ import annotations

import json
from datetime import timezone

import click

from storefront.application.cancel_order import CancelOrderHandler
from storefront.application.complete_payment import CompletePaymentHandler
from storefront.application.create_order import CreateOrderHandler
from storefront.application.deliver_order import CompleteDeliveryHandler
from storefront.application.dto import CheckoutRequest, OrderDTO, ShippingInfoSpec
from storefront.application.list_orders import ListOrdersHandler
from storefront.application.prepare_order import StartPreparingHandler
from storefront.application.refund_order import RefundOrderHandler
from storefront.application.ship_order import StartShippingHandler
from storefront.application.show_order import ShowOrderHandler
from storefront.application.update_order import UpdateOrderHandler
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.bootstrap import (
    cart_repository,
    checkout_lock,
    order_repository,
    payment_verifier,
    product_repository,
)
from storefront.infrastructure.cli.common import as_principal, caller_options, fail


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (#{dto.id})")
    click.echo(f"Status:   {dto.status}  (payment {dto.payment_status}, {dto.payment_method})")
    click.echo(f"Customer: {dto.user_id}")
    click.echo(f"Ship to:  {dto.recipient_name}, {dto.address}")
    click.echo(f"Created:  {dto.created_at}")
    if dto.tracking_number:
        click.echo(f"Tracking: {dto.tracking_number}")
    click.echo()
    click.echo(f"  {'Product':<20} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*47}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<20} {item.quantity:>5} {item.unit_price:>10} {item.subtotal:>10}"
        )
    click.echo(f"  {'-'*47}")
    click.echo(f"  {'Items':<27} {dto.items_total:>20}")
    click.echo(f"  {'Shipping':<27} {dto.shipping_fee:>20}")
    click.echo(f"  {'Discount':<27} {dto.discount_amount:>20}")
    click.echo(f"  {'Order Total':<27} {dto.total_amount:>20}")


def _checkout_request(
    request_file, recipient, address, phone, payment_method,
    shipping_method, shipping_fee, discount, session_id,
) -> CheckoutRequest:
    if request_file is not None:
        try:
            payload = json.load(request_file)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="--request")
        return CheckoutRequest.from_payload(payload)

    return CheckoutRequest(
        shipping_info=ShippingInfoSpec(
            recipient_name=recipient,
            address=address,
            recipient_phone=phone,
        ),
        payment_method=payment_method,
        shipping_method=shipping_method,
        shipping_fee=shipping_fee,
        discount_amount=discount,
        session_id=session_id,
    )


@click.command("checkout")
@caller_options
@click.option("--request", "request_file", type=click.File("r"), default=None,
              help="JSON checkout body (as sent by the storefront client).")
@click.option("--recipient", default=None, help="Recipient name.")
@click.option("--address", default=None, help="Shipping address.")
@click.option("--phone", default=None, help="Recipient phone.")
@click.option("--payment-method", default=None, help="card, bank_transfer, virtual_account, mobile or cash.")
@click.option("--shipping-method", default="free", show_default=True, help="free, standard or express.")
@click.option("--shipping-fee", default="0", help="Shipping fee.")
@click.option("--discount", default="0", help="Discount amount.")
@click.option("--session-id", default=None, help="Card processor session ID.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the response body as JSON.")
def order_checkout(
    user_id: str, admin: bool, request_file, recipient, address, phone,
    payment_method, shipping_method, shipping_fee, discount, session_id, as_json,
) -> None:
    """Turn the caller's cart (or a fallback item list) into an order."""
    request = _checkout_request(
        request_file, recipient, address, phone, payment_method,
        shipping_method, shipping_fee, discount, session_id,
    )
    verifier = payment_verifier()
    handler = CreateOrderHandler(
        order_repo=order_repository(),
        cart_repo=cart_repository(),
        product_repo=product_repository(),
        payment_verifier=verifier,
        checkout_lock=checkout_lock(),
    )

    try:
        result = handler.handle(as_principal(user_id, admin), request)
    except DomainException as exc:
        if as_json:
            click.echo(json.dumps(exc.to_payload(), indent=2))
            raise click.exceptions.Exit(1)
        raise fail(exc)
    finally:
        if verifier is not None:
            verifier.close()

    if as_json:
        message = "Order created successfully" if result.created else "Order already exists"
        click.echo(json.dumps(
            {"success": True, "message": message, "order": result.order.to_dict()},
            indent=2,
        ))
        return

    if result.created:
        click.echo(f"Order {result.order.order_number} created.")
    else:
        click.echo(f"Order {result.order.order_number} already exists for this payment.")
    click.echo()
    _display_order(result.order)


@click.command("show")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
def order_show(user_id: str, admin: bool, order_ref: str) -> None:
    """Show details of an existing order."""
    handler = ShowOrderHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref)
    except DomainException as exc:
        raise fail(exc)

    _display_order(dto)


@click.command("list")
@caller_options
@click.option("--status", default=None, help="Filter by order status.")
@click.option("--payment-status", default=None, help="Filter by payment status.")
@click.option("--page", default=1, show_default=True, type=int)
@click.option("--limit", default=10, show_default=True, type=int)
def order_list(
    user_id: str, admin: bool, status: str | None, payment_status: str | None,
    page: int, limit: int,
) -> None:
    """List orders, newest first (admins see everyone's)."""
    handler = ListOrdersHandler(order_repo=order_repository())

    try:
        result = handler.handle(
            as_principal(user_id, admin),
            status=status,
            payment_status=payment_status,
            page=page,
            limit=limit,
        )
    except DomainException as exc:
        raise fail(exc)

    if not result.orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'Number':<22} {'User':<12} {'Status':<10} {'Payment':<10} {'Total':>10}")
    click.echo("-" * 68)
    for dto in result.orders:
        click.echo(
            f"{dto.order_number:<22} {dto.user_id:<12} {dto.status:<10} "
            f"{dto.payment_status:<10} {dto.total_amount:>10}"
        )
    click.echo(f"Page {result.page}/{result.total_pages}  ({result.total} orders)")


@click.command("pay")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
@click.option("--date", "payment_date", type=click.DateTime(), default=None,
              help="Payment date (defaults to now).")
def order_pay(user_id: str, admin: bool, order_ref: str, payment_date) -> None:
    """Mark an order's payment as completed (admin)."""
    handler = CompletePaymentHandler(order_repo=order_repository())

    try:
        dto = handler.handle(
            as_principal(user_id, admin),
            order_ref,
            payment_date=payment_date.replace(tzinfo=timezone.utc) if payment_date else None,
        )
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} paid.")


@click.command("cancel")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
@click.option("--reason", default="", help="Cancellation reason.")
def order_cancel(user_id: str, admin: bool, order_ref: str, reason: str) -> None:
    """Cancel an order (owner or admin)."""
    handler = CancelOrderHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref, reason=reason)
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} cancelled.")


@click.command("refund")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
@click.option("--reason", default="", help="Refund reason.")
def order_refund(user_id: str, admin: bool, order_ref: str, reason: str) -> None:
    """Refund a paid order (admin)."""
    handler = RefundOrderHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref, reason=reason)
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} refunded.")


@click.command("prepare")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
def order_prepare(user_id: str, admin: bool, order_ref: str) -> None:
    """Start preparing a paid order for shipment (admin)."""
    handler = StartPreparingHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref)
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} is being prepared.")


@click.command("ship")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
@click.option("--tracking", "tracking_number", default="", help="Carrier tracking number.")
def order_ship(user_id: str, admin: bool, order_ref: str, tracking_number: str) -> None:
    """Hand an order to the carrier (admin)."""
    handler = StartShippingHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref, tracking_number=tracking_number)
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} shipped.")


@click.command("deliver")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
def order_deliver(user_id: str, admin: bool, order_ref: str) -> None:
    """Mark a shipped order as delivered (admin)."""
    handler = CompleteDeliveryHandler(order_repo=order_repository())

    try:
        dto = handler.handle(as_principal(user_id, admin), order_ref)
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} delivered.")


@click.command("update")
@caller_options
@click.option("--order", "order_ref", required=True, help="Order ID or order number.")
@click.option("--status", default=None, help="New status (override, skips transition checks).")
@click.option("--tracking", "tracking_number", default=None, help="Tracking number.")
@click.option("--notes", "admin_notes", default=None, help="Admin notes.")
@click.option("--note", default="", help="Reason recorded in the order history.")
def order_update(
    user_id: str, admin: bool, order_ref: str, status: str | None,
    tracking_number: str | None, admin_notes: str | None, note: str,
) -> None:
    """Override an order's status and operator fields (admin)."""
    handler = UpdateOrderHandler(order_repo=order_repository())

    try:
        dto = handler.handle(
            as_principal(user_id, admin),
            order_ref,
            status=status,
            tracking_number=tracking_number,
            admin_notes=admin_notes,
            note=note,
        )
    except DomainException as exc:
        raise fail(exc)

    click.echo(f"Order {dto.order_number} updated  (status={dto.status})")
