"""Application service: Create Order (checkout).

Turns a checkout request into exactly one persisted order:

1. replay an existing order recorded against the same processor session;
2. verify the processor session (paid, same principal);
3. validate shipping and payment input;
4. source items from the live cart, or from the client's fallback list;
5. compute totals;
6. reconcile the verified amount with the computed total;
7. reject a near-identical order placed moments ago;
8. persist the order;
9. clear the cart it was built from.

Any fault before step 8 leaves nothing behind.  The order insert and the
cart clear are separate writes; the cart carries a pending-clear marker
between them so ``ReconcileCartsHandler`` can finish the job after a crash.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from storefront.application.checkout_lock import CheckoutLock, InProcessCheckoutLock
from storefront.application.dto import (
    CheckoutRequest,
    CheckoutResult,
    FallbackItemSpec,
    order_to_dto,
)
from storefront.domain.exceptions import (
    AmountMismatchError,
    DomainException,
    DuplicateOrderError,
    EmptyCartError,
    PaymentNotCompletedError,
    UserIdMismatchError,
    ValidationError,
)
from storefront.domain.model.cart import Cart
from storefront.domain.model.order import (
    Order,
    OrderItem,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
    ShippingInfo,
    ShippingMethod,
    payment_info_for,
)
from storefront.domain.model.principal import Principal
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.order_repository import OrderRepository
from storefront.domain.repository.product_repository import ProductRepository
from storefront.domain.service.order_numbers import OrderNumberGenerator
from storefront.domain.service.payment_verifier import PaymentSession, PaymentVerifier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
AMOUNT_TOLERANCE = Decimal("0.01")
RECENT_ORDER_WINDOW = timedelta(minutes=5)
DUPLICATE_WINDOW = timedelta(seconds=60)
# Raw values: "processing" is not an OrderStatus and never matches.
DUPLICATE_CANDIDATE_STATUSES = ("pending", "processing", "shipping")


class CreateOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        payment_verifier: PaymentVerifier | None = None,
        checkout_lock: CheckoutLock | None = None,
        clock: Callable[[], datetime] | None = None,
        order_numbers: OrderNumberGenerator | None = None,
    ) -> None:
        self._order_repo = order_repo
        self._cart_repo = cart_repo
        self._product_repo = product_repo
        self._payment_verifier = payment_verifier
        self._lock = checkout_lock or InProcessCheckoutLock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._order_numbers = order_numbers or OrderNumberGenerator(
            order_repo, clock=self._clock
        )

    def handle(self, principal: Principal, request: CheckoutRequest) -> CheckoutResult:
        try:
            return self._checkout(principal.user_id, request)
        except DomainException:
            raise
        except Exception as exc:
            logger.exception("Unexpected error creating order for user %s", principal.user_id)
            raise DomainException(
                "An unexpected error occurred while creating the order."
            ) from exc

    # --- Steps ----------------------------------------------------------------

    def _checkout(self, user_id: str, request: CheckoutRequest) -> CheckoutResult:
        session_id = (request.session_id or "").strip() or None

        # 1. Idempotency by processor session
        if session_id:
            replayed = self._replay(session_id, user_id)
            if replayed is not None:
                return replayed

        # 2. Payment verification
        verified = self._verify_payment(session_id, user_id) if session_id else None

        # 3. Input validation
        shipping_info = self._shipping_info(request)
        payment_method = _parse_enum(PaymentMethod, request.payment_method, "Invalid payment method.")
        shipping_method = _parse_enum(
            ShippingMethod, request.shipping_method or "free", "Invalid shipping method."
        )
        shipping_fee = Money.of(request.shipping_fee or "0")
        discount_amount = Money.of(request.discount_amount or "0")
        payment_info = self._payment_info(payment_method, session_id, verified)

        with self._lock.hold(user_id):
            # A concurrent request may have finished the same session while
            # this one waited for the lock.
            if session_id:
                replayed = self._replay(session_id, user_id)
                if replayed is not None:
                    return replayed

            now = self._clock()

            # 4. Item sourcing
            cart = self._cart_repo.get_for_user(user_id)
            from_cart = cart is not None and not cart.is_empty
            if from_cart:
                items = self._snapshot_cart(cart)  # type: ignore[arg-type]
            elif request.fallback_items:
                logger.info("Cart empty for user %s; using fallback items", user_id)
                items = self._snapshot_fallback(request.fallback_items)
            else:
                raise EmptyCartError(
                    "Cart is empty and no order items found. Cannot create order."
                )

            # 5. Totals (derived by the aggregate)
            order = Order.create(
                user_id=user_id,
                items=items,
                shipping_info=shipping_info,
                payment_method=payment_method,
                payment_info=payment_info,
                shipping_method=shipping_method,
                shipping_fee=shipping_fee,
                discount_amount=discount_amount,
                payment_status=(
                    PaymentStatus.COMPLETED
                    if payment_info.is_verified_paid
                    else PaymentStatus.PENDING
                ),
                created_at=now,
            )

            # 6. Reconciliation
            if verified is not None:
                self._reconcile(verified.amount_captured, order.total_amount)

            # 7. Duplicate-submission guard
            self._reject_recent_duplicate(user_id, order, now)

            # 8. Persist, 9. clear cart
            order.order_number = self._order_numbers.generate()
            self._persist(order, cart if from_cart else None)

        logger.info(
            "Order %s created for user %s: %d item(s), total %s, payment %s",
            order.order_number,
            user_id,
            len(order.items),
            order.total_amount,
            order.payment_status.value,
        )
        return CheckoutResult(order=order_to_dto(order), created=True)

    def _replay(self, session_id: str, user_id: str) -> CheckoutResult | None:
        existing = self._order_repo.find_by_payment_session(session_id)
        if existing is None:
            return None
        if existing.user_id != user_id:
            logger.warning(
                "Session %s already settled order %s of user %s; requested by %s",
                session_id,
                existing.order_number,
                existing.user_id,
                user_id,
            )
            raise UserIdMismatchError("Payment verification failed. User ID mismatch.")
        logger.info(
            "Order %s already exists for payment session %s",
            existing.order_number,
            session_id,
        )
        return CheckoutResult(order=order_to_dto(existing), created=False)

    def _verify_payment(self, session_id: str, user_id: str) -> PaymentSession | None:
        if self._payment_verifier is None:
            logger.warning(
                "Payment verifier not configured; session %s stored unverified",
                session_id,
            )
            return None

        session = self._payment_verifier.retrieve_session(session_id)
        if not session.is_paid:
            logger.warning(
                "Session %s not paid (processor status %s)",
                session_id,
                session.payment_status,
            )
            raise PaymentNotCompletedError(
                "Payment verification failed. Payment has not been completed.",
                payment_status=session.payment_status,
            )
        if session.principal_id and session.principal_id != user_id:
            logger.warning(
                "Session %s bound to user %s, requested by %s",
                session_id,
                session.principal_id,
                user_id,
            )
            raise UserIdMismatchError("Payment verification failed. User ID mismatch.")
        return session

    @staticmethod
    def _shipping_info(request: CheckoutRequest) -> ShippingInfo:
        spec = request.shipping_info
        if spec is None or not request.payment_method:
            raise ValidationError("shippingInfo and paymentMethod are required fields.")
        return ShippingInfo.create(
            recipient_name=spec.recipient_name,
            address=spec.address,
            recipient_phone=spec.recipient_phone,
            email=spec.email,
            apartment=spec.apartment,
            city=spec.city,
            state=spec.state,
            postal_code=spec.postal_code,
            delivery_request=spec.delivery_request,
        )

    @staticmethod
    def _payment_info(
        method: PaymentMethod,
        session_id: str | None,
        verified: PaymentSession | None,
    ) -> PaymentInfo:
        info = payment_info_for(method, session_id=session_id)
        if verified is None:
            return info
        return replace(
            info,
            payment_intent_id=verified.payment_reference_id,
            amount=verified.amount_captured,
            currency=verified.currency,
            processor_status=verified.payment_status,
        )

    def _snapshot_cart(self, cart: Cart) -> list[OrderItem]:
        items: list[OrderItem] = []
        for line in cart.items:
            product = self._product_repo.get_by_id(line.product_id)
            if product is None:
                raise ValidationError(
                    "A product in your cart is no longer available.",
                    product_id=line.product_id,
                )
            items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_sku=product.sku,
                    product_image=product.main_image,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    color=line.color,
                    size=line.size,
                )
            )
        return items

    def _snapshot_fallback(self, specs: tuple[FallbackItemSpec, ...]) -> list[OrderItem]:
        items: list[OrderItem] = []
        for spec in specs:
            product = self._product_repo.get_by_id(spec.product_id)
            if product is None:
                logger.warning(
                    "Fallback item references missing product %s; using client metadata",
                    spec.product_id,
                )
                if spec.price is None:
                    raise ValidationError(
                        f"Price is required for unknown product '{spec.product_id}'"
                    )
                name = spec.product_name or "Product"
                sku = spec.product_sku or ""
                image = spec.product_image or ""
                price = Money.of(spec.price)
            else:
                name, sku, image = product.name, product.sku, product.main_image
                price = product.price if spec.price is None else Money.of(spec.price)

            items.append(
                OrderItem(
                    product_id=spec.product_id,
                    product_name=name,
                    product_sku=sku,
                    product_image=image,
                    quantity=Quantity(spec.quantity),
                    unit_price=price,
                    color=spec.color or None,
                    size=spec.size or None,
                )
            )
        return items

    @staticmethod
    def _reconcile(paid: Decimal, total: Money) -> None:
        difference = total.distance(paid)
        if difference > AMOUNT_TOLERANCE:
            logger.warning("Amount mismatch: paid %s, order total %s", paid, total)
            raise AmountMismatchError(
                "Payment verification failed. Payment amount does not match order total.",
                payment_amount=str(paid),
                order_amount=str(total.amount),
                difference=str(difference),
            )

    def _reject_recent_duplicate(self, user_id: str, order: Order, now: datetime) -> None:
        recent = self._order_repo.find_recent_by_user(
            user_id,
            since=now - RECENT_ORDER_WINDOW,
            statuses=DUPLICATE_CANDIDATE_STATUSES,
        )
        for previous in recent:
            if previous.total_amount.distance(order.total_amount) >= AMOUNT_TOLERANCE:
                continue
            if len(previous.items) != len(order.items):
                continue
            if now - previous.created_at < DUPLICATE_WINDOW:
                logger.warning(
                    "Duplicate checkout for user %s rejected; matches order %s",
                    user_id,
                    previous.order_number,
                )
                raise DuplicateOrderError(
                    "A similar order was recently created. "
                    "Please wait before creating another order.",
                    existing_order_number=previous.order_number,
                )

    def _persist(self, order: Order, cart: Cart | None) -> None:
        if cart is None:
            self._order_repo.save(order)
            return

        cart.mark_pending_clear(order.order_number)  # type: ignore[arg-type]
        self._cart_repo.save(cart)
        try:
            self._order_repo.save(order)
        except Exception:
            cart.release_pending_clear()
            self._cart_repo.save(cart)
            raise

        cart.clear()
        try:
            self._cart_repo.save(cart)
        except Exception:
            # The order exists; the marker left on the stored cart lets the
            # reconciliation sweep clear it later.
            logger.exception(
                "Order %s saved but cart of user %s not cleared",
                order.order_number,
                cart.user_id,
            )


def _parse_enum(enum_cls, value: str | None, message: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(message, value=value) from None
