"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the outer surfaces (CLI, an HTTP layer) and the
application handlers without exposing domain internals.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from storefront.domain.model.cart import Cart
from storefront.domain.model.order import CardPaymentInfo, ManualPaymentInfo, Order
from storefront.domain.model.product import Product


# --- Inputs -------------------------------------------------------------------


@dataclass(frozen=True)
class ShippingInfoSpec:
    """Input: shipping details as typed by the customer."""

    recipient_name: str | None = None
    address: str | None = None
    recipient_phone: str | None = None
    email: str | None = None
    apartment: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    delivery_request: str | None = None


@dataclass(frozen=True)
class FallbackItemSpec:
    """Input: one line of the client-held item list used when the cart is empty.

    ``price`` is the unit price the customer was charged; when absent the
    current catalog price is used.
    """

    product_id: str
    quantity: int
    price: str | None = None
    product_name: str | None = None
    product_sku: str | None = None
    product_image: str | None = None
    color: str | None = None
    size: str | None = None


@dataclass(frozen=True)
class CheckoutRequest:
    shipping_info: ShippingInfoSpec | None
    payment_method: str | None
    shipping_fee: str = "0"
    discount_amount: str = "0"
    shipping_method: str = "free"
    session_id: str | None = None
    fallback_items: tuple[FallbackItemSpec, ...] = ()

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> CheckoutRequest:
        """Build a request from the storefront client's JSON body."""
        raw_shipping = payload.get("shippingInfo")
        shipping = None
        if raw_shipping:
            shipping = ShippingInfoSpec(
                recipient_name=raw_shipping.get("recipientName"),
                address=raw_shipping.get("address"),
                recipient_phone=raw_shipping.get("recipientPhone"),
                email=raw_shipping.get("email"),
                apartment=raw_shipping.get("apartment"),
                city=raw_shipping.get("city"),
                state=raw_shipping.get("state"),
                postal_code=raw_shipping.get("postalCode"),
                delivery_request=raw_shipping.get("deliveryRequest"),
            )

        fallback = tuple(
            FallbackItemSpec(
                product_id=str(item.get("productId", "")),
                quantity=item.get("quantity", 0),
                price=None if item.get("price") is None else str(item["price"]),
                product_name=item.get("productName"),
                product_sku=item.get("productSku"),
                product_image=item.get("productImage"),
                color=item.get("color"),
                size=item.get("size"),
            )
            for item in payload.get("orderItemsFromMetadata") or []
        )

        payment_info = payload.get("paymentInfo") or {}
        return CheckoutRequest(
            shipping_info=shipping,
            payment_method=payload.get("paymentMethod"),
            shipping_fee=str(payload.get("shippingFee") or 0),
            discount_amount=str(payload.get("discountAmount") or 0),
            shipping_method=payload.get("shippingMethod") or "free",
            session_id=payment_info.get("sessionId"),
            fallback_items=fallback,
        )


# --- Outputs ------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemDTO:
    product_id: str
    product_name: str
    product_sku: str
    product_image: str
    quantity: int
    unit_price: str  # formatted, e.g. "$15.00"
    subtotal: str
    color: str | None
    size: str | None


@dataclass(frozen=True)
class OrderDTO:
    id: int
    order_number: str
    user_id: str
    status: str
    payment_status: str
    payment_method: str
    shipping_method: str
    items: list[OrderItemDTO]
    items_total: str
    shipping_fee: str
    discount_amount: str
    total_amount: str
    recipient_name: str
    recipient_phone: str
    address: str
    payment: dict[str, Any]
    created_at: str
    payment_date: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None
    cancelled_at: str | None = None
    refunded_at: str | None = None
    tracking_number: str | None = None
    admin_notes: str | None = None
    cancel_reason: str | None = None
    refund_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CheckoutResult:
    """``created`` is False when an earlier order for the same session was replayed."""

    order: OrderDTO
    created: bool


@dataclass(frozen=True)
class OrderPageDTO:
    orders: list[OrderDTO]
    total: int
    page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


@dataclass(frozen=True)
class CartItemDTO:
    id: str
    product_id: str
    quantity: int
    unit_price: str
    line_total: str
    color: str | None
    size: str | None


@dataclass(frozen=True)
class CartDTO:
    user_id: str
    items: list[CartItemDTO] = field(default_factory=list)
    total_items: int = 0
    total_amount: str = "$0.00"


@dataclass(frozen=True)
class ProductDTO:
    id: str
    sku: str
    name: str
    price: str
    category: str
    image: str
    images: list[str]
    description: str


@dataclass(frozen=True)
class ProductPageDTO:
    products: list[ProductDTO]
    total: int
    page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


# --- Mapping ------------------------------------------------------------------


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _payment_view(order: Order) -> dict[str, Any]:
    info = order.payment_info
    if isinstance(info, CardPaymentInfo):
        return {
            "type": "card",
            "session_id": info.session_id,
            "payment_intent_id": info.payment_intent_id,
            "amount": None if info.amount is None else str(info.amount),
            "currency": info.currency,
            "processor_status": info.processor_status,
        }
    if isinstance(info, ManualPaymentInfo):
        return {"type": "manual", "reference": info.reference}
    return {}


def order_to_dto(order: Order) -> OrderDTO:
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        order_number=order.order_number,  # type: ignore[arg-type]
        user_id=order.user_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        payment_method=order.payment_method.value,
        shipping_method=order.shipping_method.value,
        items=[
            OrderItemDTO(
                product_id=item.product_id,
                product_name=item.product_name,
                product_sku=item.product_sku,
                product_image=item.product_image,
                quantity=item.quantity.value,
                unit_price=str(item.unit_price),
                subtotal=str(item.subtotal),
                color=item.color,
                size=item.size,
            )
            for item in order.items
        ],
        items_total=str(order.items_total),
        shipping_fee=str(order.shipping_fee),
        discount_amount=str(order.discount_amount),
        total_amount=str(order.total_amount),
        recipient_name=order.shipping_info.recipient_name,
        recipient_phone=order.shipping_info.recipient_phone,
        address=order.shipping_info.address,
        payment=_payment_view(order),
        created_at=order.created_at.isoformat(),
        payment_date=_ts(order.payment_date),
        shipped_at=_ts(order.shipped_at),
        delivered_at=_ts(order.delivered_at),
        cancelled_at=_ts(order.cancelled_at),
        refunded_at=_ts(order.refunded_at),
        tracking_number=order.tracking_number,
        admin_notes=order.admin_notes,
        cancel_reason=order.cancel_reason,
        refund_reason=order.refund_reason,
    )


def cart_to_dto(cart: Cart) -> CartDTO:
    return CartDTO(
        user_id=cart.user_id,
        items=[
            CartItemDTO(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity.value,
                unit_price=str(item.unit_price),
                line_total=str(item.line_total),
                color=item.color,
                size=item.size,
            )
            for item in cart.items
        ],
        total_items=cart.total_items,
        total_amount=str(cart.total_amount),
    )


def product_to_dto(product: Product) -> ProductDTO:
    return ProductDTO(
        id=product.id,
        sku=product.sku,
        name=product.name,
        price=str(product.price),
        category=product.category,
        image=product.main_image,
        images=list(product.images),
        description=product.description,
    )
