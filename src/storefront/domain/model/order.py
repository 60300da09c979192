"""Order aggregate: the ledger record of a completed checkout.

The Order is an aggregate root that owns its line items.  Items, shipping
details and payment metadata are a point-in-time snapshot; afterwards only
the lifecycle methods below change an order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Union

from storefront.domain.exceptions import InvalidTransitionError, ValidationError
from storefront.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    VIRTUAL_ACCOUNT = "virtual_account"
    MOBILE = "mobile"
    CASH = "cash"


class ShippingMethod(Enum):
    FREE = "free"
    STANDARD = "standard"
    EXPRESS = "express"


# Status x payment-status pairs the lifecycle methods can produce.  The
# admin override may leave this table; ``Order.statuses_consistent`` tells.
COMPATIBLE_PAYMENT_STATUSES: dict[OrderStatus, frozenset[PaymentStatus]] = {
    OrderStatus.PENDING: frozenset(
        {PaymentStatus.PENDING, PaymentStatus.COMPLETED, PaymentStatus.FAILED}
    ),
    OrderStatus.PAID: frozenset({PaymentStatus.COMPLETED}),
    OrderStatus.PREPARING: frozenset({PaymentStatus.COMPLETED}),
    OrderStatus.SHIPPING: frozenset({PaymentStatus.COMPLETED}),
    OrderStatus.DELIVERED: frozenset({PaymentStatus.COMPLETED}),
    OrderStatus.CANCELLED: frozenset({PaymentStatus.CANCELLED}),
    OrderStatus.REFUNDED: frozenset({PaymentStatus.REFUNDED}),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Embedded value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItem:
    """Snapshot of one purchased product.

    Name, SKU, image and price are copied from the catalog (or the client's
    fallback metadata) at checkout and never re-read.  ``subtotal`` is
    derived, so it cannot drift from price and quantity.
    """

    product_id: str
    product_name: str
    product_sku: str
    quantity: Quantity
    unit_price: Money
    product_image: str = ""
    color: str | None = None
    size: str | None = None

    def __post_init__(self) -> None:
        if not self.product_name or not self.product_name.strip():
            raise ValidationError("Order item product name is required")

    @property
    def subtotal(self) -> Money:
        return (self.unit_price * self.quantity.value).rounded()


# Placeholder stored when the customer leaves the phone blank: the phone is
# optional for checkout, but shipping labels downstream need a non-empty
# string.
PHONE_PLACEHOLDER = "0000000000"

_DIGITS_AND_DASHES = re.compile(r"^[0-9-]+$")


@dataclass(frozen=True)
class ShippingInfo:
    recipient_name: str
    recipient_phone: str
    address: str
    email: str | None = None
    apartment: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    delivery_request: str = ""

    @staticmethod
    def create(
        recipient_name: str | None,
        address: str | None,
        recipient_phone: str | None = None,
        email: str | None = None,
        apartment: str | None = None,
        city: str | None = None,
        state: str | None = None,
        postal_code: str | None = None,
        delivery_request: str | None = None,
    ) -> ShippingInfo:
        """Normalize and validate shipping details."""
        name = (recipient_name or "").strip()
        addr = (address or "").strip()
        if not name or not addr:
            raise ValidationError(
                "recipientName and address are required in shippingInfo."
            )
        if len(name) > 50:
            raise ValidationError("Recipient name cannot exceed 50 characters.")
        if len(addr) > 200:
            raise ValidationError("Address cannot exceed 200 characters.")

        phone = (recipient_phone or "").strip() or PHONE_PLACEHOLDER
        if not _DIGITS_AND_DASHES.match(phone):
            raise ValidationError("Invalid phone number format.")

        postal = (postal_code or "").strip() or None
        if postal is not None and not _DIGITS_AND_DASHES.match(postal):
            raise ValidationError("Invalid postal code format.")

        request = (delivery_request or "").strip()
        if len(request) > 200:
            raise ValidationError("Delivery request cannot exceed 200 characters.")

        return ShippingInfo(
            recipient_name=name,
            recipient_phone=phone,
            address=addr,
            email=(email or "").strip() or None,
            apartment=(apartment or "").strip() or None,
            city=(city or "").strip() or None,
            state=(state or "").strip() or None,
            postal_code=postal,
            delivery_request=request,
        )

    @property
    def phone_is_placeholder(self) -> bool:
        return self.recipient_phone == PHONE_PLACEHOLDER


@dataclass(frozen=True)
class CardPaymentInfo:
    """Processor identifiers for a card checkout.

    ``amount``/``currency``/``processor_status`` are only filled after the
    processor session was verified; they are reconciled against the order
    total but never trusted as authorization on their own.
    """

    session_id: str | None = None
    payment_intent_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    processor_status: str | None = None

    @property
    def is_verified_paid(self) -> bool:
        return self.amount is not None and self.processor_status == "paid"


@dataclass(frozen=True)
class ManualPaymentInfo:
    """Marker for settlements handled outside the card processor."""

    reference: str | None = None

    @property
    def is_verified_paid(self) -> bool:
        return False


PaymentInfo = Union[CardPaymentInfo, ManualPaymentInfo]


def payment_info_for(
    method: PaymentMethod,
    session_id: str | None = None,
    reference: str | None = None,
) -> PaymentInfo:
    """Pick the payment-info variant that matches the payment method."""
    if method is PaymentMethod.CARD:
        return CardPaymentInfo(session_id=session_id)
    if session_id:
        raise ValidationError(
            f"A payment session is only valid for card payments, not '{method.value}'."
        )
    return ManualPaymentInfo(reference=reference)


@dataclass(frozen=True)
class StatusChange:
    """One entry of an order's status timeline."""

    at: datetime
    from_status: OrderStatus
    to_status: OrderStatus
    actor: str | None = None
    via: str = "transition"  # or "override"
    note: str = ""


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------


@dataclass
class Order:
    """Aggregate root for placed orders.

    Use ``Order.create()`` for new orders; it enforces all creation rules.
    ``__init__`` stays simple so repositories can reconstitute persisted
    orders without re-validating.
    """

    id: int | None
    user_id: str
    items: list[OrderItem]
    shipping_info: ShippingInfo
    payment_method: PaymentMethod
    payment_info: PaymentInfo
    shipping_method: ShippingMethod = ShippingMethod.FREE
    shipping_fee: Money = field(default_factory=Money.zero)
    discount_amount: Money = field(default_factory=Money.zero)
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_number: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    payment_date: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    tracking_number: str | None = None
    admin_notes: str | None = None
    cancel_reason: str | None = None
    refund_reason: str | None = None
    history: list[StatusChange] = field(default_factory=list)

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        user_id: str,
        items: list[OrderItem],
        shipping_info: ShippingInfo,
        payment_method: PaymentMethod,
        payment_info: PaymentInfo,
        shipping_method: ShippingMethod = ShippingMethod.FREE,
        shipping_fee: Money | None = None,
        discount_amount: Money | None = None,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        created_at: datetime | None = None,
    ) -> Order:
        """Create a new pending order, enforcing all invariants."""
        if not user_id:
            raise ValidationError("Order owner is required")
        if not items:
            raise ValidationError("At least one order item is required.")

        now = created_at or _utcnow()
        order = Order(
            id=None,
            user_id=user_id,
            items=list(items),
            shipping_info=shipping_info,
            payment_method=payment_method,
            payment_info=payment_info,
            shipping_method=shipping_method,
            shipping_fee=shipping_fee or Money.zero(),
            discount_amount=discount_amount or Money.zero(),
            status=OrderStatus.PENDING,
            payment_status=payment_status,
            created_at=now,
            updated_at=now,
        )

        if order.discount_amount > order.items_total + order.shipping_fee:
            raise ValidationError(
                f"Discount {order.discount_amount} exceeds order amount "
                f"{order.items_total + order.shipping_fee}"
            )
        return order

    # --- Computed properties --------------------------------------------------

    @property
    def items_total(self) -> Money:
        return Money.total(item.subtotal for item in self.items).rounded()

    @property
    def total_amount(self) -> Money:
        return (self.items_total + self.shipping_fee - self.discount_amount).rounded()

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity.value for item in self.items)

    @property
    def is_active(self) -> bool:
        return self.status not in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

    @property
    def statuses_consistent(self) -> bool:
        return self.payment_status in COMPATIBLE_PAYMENT_STATUSES[self.status]

    def session_id(self) -> str | None:
        if isinstance(self.payment_info, CardPaymentInfo):
            return self.payment_info.session_id
        return None

    # --- Lifecycle transitions ------------------------------------------------

    def complete_payment(
        self,
        at: datetime | None = None,
        actor: str | None = None,
        paid_at: datetime | None = None,
    ) -> None:
        """pending -> paid, payment pending -> completed.

        ``paid_at`` is when the money arrived, if that differs from *at*.
        """
        if self.payment_status is PaymentStatus.COMPLETED:
            raise InvalidTransitionError(
                "Payment has already been completed for this order."
            )
        if self.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise InvalidTransitionError(
                f"Payment cannot be completed for a {self.status.value} order."
            )
        now = at or _utcnow()
        previous = self.status
        self.payment_status = PaymentStatus.COMPLETED
        self.status = OrderStatus.PAID
        self.payment_date = paid_at or now
        self._record(previous, now, actor)

    def cancel(
        self, reason: str = "", at: datetime | None = None, actor: str | None = None
    ) -> None:
        """Any non-finished status -> cancelled."""
        if self.status in (
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
            OrderStatus.DELIVERED,
        ):
            raise InvalidTransitionError("Order cannot be cancelled in this status.")
        now = at or _utcnow()
        previous = self.status
        self.status = OrderStatus.CANCELLED
        self.payment_status = PaymentStatus.CANCELLED
        self._stamp_once("cancelled_at", now)
        self.cancel_reason = reason
        self._record(previous, now, actor, note=reason)

    def refund(
        self, reason: str = "", at: datetime | None = None, actor: str | None = None
    ) -> None:
        """Completed payment -> refunded."""
        if self.payment_status is not PaymentStatus.COMPLETED:
            raise InvalidTransitionError(
                "Orders with incomplete payment cannot be refunded."
            )
        if self.status is OrderStatus.REFUNDED:
            raise InvalidTransitionError("Order has already been refunded.")
        now = at or _utcnow()
        previous = self.status
        self.status = OrderStatus.REFUNDED
        self.payment_status = PaymentStatus.REFUNDED
        self._stamp_once("refunded_at", now)
        self.refund_reason = reason
        self._record(previous, now, actor, note=reason)

    def start_preparing(
        self, at: datetime | None = None, actor: str | None = None
    ) -> None:
        """paid -> preparing.

        Checkouts verified by the processor are created as pending with a
        completed payment, so those may go straight to preparing too.
        """
        ready = self.status is OrderStatus.PAID or (
            self.status is OrderStatus.PENDING
            and self.payment_status is PaymentStatus.COMPLETED
        )
        if not ready:
            raise InvalidTransitionError(
                "Only paid orders can be prepared for shipment."
            )
        now = at or _utcnow()
        previous = self.status
        self.status = OrderStatus.PREPARING
        self._record(previous, now, actor)

    def start_shipping(
        self,
        tracking_number: str = "",
        at: datetime | None = None,
        actor: str | None = None,
    ) -> None:
        """paid|preparing -> shipping."""
        if self.status not in (OrderStatus.PAID, OrderStatus.PREPARING):
            raise InvalidTransitionError(
                "Shipping cannot be started in this order status."
            )
        now = at or _utcnow()
        previous = self.status
        self.status = OrderStatus.SHIPPING
        self._stamp_once("shipped_at", now)
        if tracking_number:
            self.tracking_number = tracking_number
        self._record(previous, now, actor)

    def complete_delivery(
        self, at: datetime | None = None, actor: str | None = None
    ) -> None:
        """shipping -> delivered."""
        if self.status is not OrderStatus.SHIPPING:
            raise InvalidTransitionError(
                "Only orders in shipping status can be marked as delivered."
            )
        now = at or _utcnow()
        previous = self.status
        self.status = OrderStatus.DELIVERED
        self._stamp_once("delivered_at", now)
        self._record(previous, now, actor)

    def override_status(
        self,
        status: OrderStatus,
        at: datetime | None = None,
        actor: str | None = None,
        note: str = "",
    ) -> None:
        """Administrative escape hatch: set any status, bypassing the graph.

        Lifecycle timestamps are still stamped the first time the order
        enters the matching status.  The change is always recorded in
        ``history`` with ``via="override"``.
        """
        now = at or _utcnow()
        previous = self.status
        self.status = status
        stamp_field = _STATUS_TIMESTAMPS.get(status)
        if stamp_field is not None:
            self._stamp_once(stamp_field, now)
        self._record(previous, now, actor, via="override", note=note)

    def update_metadata(
        self,
        tracking_number: str | None = None,
        admin_notes: str | None = None,
        at: datetime | None = None,
    ) -> None:
        """Operator-facing fields; ``None`` leaves a field untouched."""
        if tracking_number is not None:
            self.tracking_number = tracking_number
        if admin_notes is not None:
            self.admin_notes = admin_notes
        self.updated_at = at or _utcnow()

    # --- Internal helpers -----------------------------------------------------

    def _stamp_once(self, field_name: str, when: datetime) -> None:
        if getattr(self, field_name) is None:
            setattr(self, field_name, when)

    def _record(
        self,
        previous: OrderStatus,
        at: datetime,
        actor: str | None,
        via: str = "transition",
        note: str = "",
    ) -> None:
        self.updated_at = at
        self.history.append(
            StatusChange(
                at=at,
                from_status=previous,
                to_status=self.status,
                actor=actor,
                via=via,
                note=note,
            )
        )


_STATUS_TIMESTAMPS = {
    OrderStatus.SHIPPING: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.REFUNDED: "refunded_at",
}
