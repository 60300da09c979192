"""Integration tests for the CreateOrder (checkout) use case.

Uses in-memory fakes; no file I/O, no network.
"""

import logging
import threading
from contextlib import contextmanager
from decimal import Decimal

import pytest

from storefront.application.checkout_lock import CheckoutLock, InProcessCheckoutLock
from storefront.application.create_order import CreateOrderHandler
from storefront.application.dto import CheckoutRequest, FallbackItemSpec, ShippingInfoSpec
from storefront.domain.exceptions import (
    AmountMismatchError,
    DomainException,
    DuplicateOrderError,
    EmptyCartError,
    PaymentNotCompletedError,
    PaymentProviderUnavailableError,
    PaymentVerificationError,
    UserIdMismatchError,
    ValidationError,
)
from storefront.domain.model.cart import Cart
from storefront.domain.model.principal import Principal
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.service.order_numbers import ORDER_NUMBER_PATTERN
from storefront.domain.service.payment_verifier import PaymentSession
from tests.fakes import (
    FakeCartRepository,
    FakeClock,
    FakeOrderRepository,
    FakePaymentVerifier,
    FakeProductRepository,
)

ALICE = Principal("u1")


def _products() -> list[Product]:
    return [
        Product(id="1", sku="TS-1", name="T-shirt", price=Money.of("25.00"), image="ts.png"),
        Product(id="2", sku="MUG-1", name="Mug", price=Money.of("9.50")),
    ]


def _cart(*lines: tuple[str, int, str]) -> Cart:
    cart = Cart(user_id="u1")
    for product_id, qty, price in lines:
        cart.add_item(product_id, Quantity(qty), Money.of(price))
    return cart


def _paid_session(amount: str = "50.00", session_id: str = "cs_1", user_id: str = "u1"):
    return PaymentSession(
        session_id=session_id,
        payment_status="paid",
        amount_captured=Decimal(amount),
        currency="USD",
        principal_id=user_id,
        payment_reference_id="pi_1",
    )


def _request(**overrides) -> CheckoutRequest:
    fields = {
        "shipping_info": ShippingInfoSpec(recipient_name="Kim", address="1 Main St"),
        "payment_method": "bank_transfer",
    }
    fields.update(overrides)
    return CheckoutRequest(**fields)


def _card_request(session_id: str = "cs_1", **overrides) -> CheckoutRequest:
    return _request(payment_method="card", session_id=session_id, **overrides)


def _setup(
    cart: Cart | None = None,
    verifier: FakePaymentVerifier | None = None,
    **handler_kwargs,
) -> tuple[CreateOrderHandler, FakeOrderRepository, FakeCartRepository, FakeClock]:
    """Build handler with fake repos; the cart defaults to 2 T-shirts ($50)."""
    if cart is None:
        cart = _cart(("1", 2, "25.00"))
    order_repo = handler_kwargs.pop("order_repo", None) or FakeOrderRepository()
    cart_repo = handler_kwargs.pop("cart_repo", None) or FakeCartRepository()
    cart_repo.save(cart)
    clock = FakeClock()
    handler = CreateOrderHandler(
        order_repo,
        cart_repo,
        handler_kwargs.pop("product_repo", None) or FakeProductRepository(_products()),
        payment_verifier=verifier,
        clock=clock,
        **handler_kwargs,
    )
    return handler, order_repo, cart_repo, clock


def _refill(cart_repo: FakeCartRepository, *lines) -> None:
    if not lines:
        lines = (("1", 2, "25.00"),)
    cart_repo.save(_cart(*lines))


class TestCheckoutFromCart:

    def test_creates_pending_order(self):
        handler, order_repo, _, _ = _setup()
        result = handler.handle(ALICE, _request())

        assert result.created
        dto = result.order
        assert dto.status == "pending"
        assert dto.payment_status == "pending"
        assert dto.total_amount == "$50.00"
        assert ORDER_NUMBER_PATTERN.match(dto.order_number)
        assert order_repo.get_by_id(dto.id).order_number == dto.order_number

    def test_items_snapshot_catalog_fields(self):
        handler, _, _, _ = _setup()
        item = handler.handle(ALICE, _request()).order.items[0]
        assert item.product_name == "T-shirt"
        assert item.product_sku == "TS-1"
        assert item.product_image == "ts.png"
        assert item.quantity == 2
        assert item.subtotal == "$50.00"

    def test_cart_price_is_used_for_items(self):
        handler, _, _, _ = _setup(_cart(("1", 1, "20.00")))
        assert handler.handle(ALICE, _request()).order.total_amount == "$20.00"

    def test_totals_with_fee_and_discount(self):
        handler, order_repo, _, _ = _setup(_cart(("1", 2, "25.00"), ("2", 1, "9.50")))
        dto = handler.handle(
            ALICE, _request(shipping_fee="3.00", discount_amount="2.50")
        ).order
        assert dto.items_total == "$59.50"
        assert dto.total_amount == "$60.00"
        assert order_repo.get_by_id(dto.id).total_amount.amount == Decimal("60.00")

    def test_cart_cleared_after_checkout(self):
        handler, _, cart_repo, _ = _setup()
        handler.handle(ALICE, _request())

        cart = cart_repo.get_for_user("u1")
        assert cart.is_empty
        assert cart.total_items == 0
        assert cart.total_amount.is_zero()
        assert cart.pending_clear_order is None

    def test_catalog_price_change_does_not_touch_order(self):
        products = FakeProductRepository(_products())
        handler, order_repo, _, _ = _setup(product_repo=products)
        dto = handler.handle(ALICE, _request()).order

        shirt = products.get_by_id("1")
        shirt.revise(price=Money.of("99.99"), name="Renamed")
        products.save(shirt)

        stored = order_repo.get_by_id(dto.id)
        assert str(stored.total_amount) == "$50.00"
        assert stored.items[0].product_name == "T-shirt"

    def test_deleted_product_in_cart_rejected(self):
        products = FakeProductRepository(_products())
        products.delete("1")
        handler, order_repo, cart_repo, _ = _setup(product_repo=products)

        with pytest.raises(ValidationError, match="no longer available"):
            handler.handle(ALICE, _request())
        assert order_repo.all() == []
        assert not cart_repo.get_for_user("u1").is_empty


class TestFallbackItems:

    def test_used_when_cart_empty(self):
        handler, _, cart_repo, _ = _setup(Cart(user_id="u1"))
        request = _card_request(
            session_id=None,
            fallback_items=(FallbackItemSpec(product_id="2", quantity=2, price="9.00"),),
        )
        dto = handler.handle(ALICE, request).order

        assert dto.items[0].product_name == "Mug"
        assert dto.items[0].product_sku == "MUG-1"
        assert dto.total_amount == "$18.00"
        assert cart_repo.get_for_user("u1").is_empty

    def test_catalog_price_when_client_sends_none(self):
        handler, _, _, _ = _setup(Cart(user_id="u1"))
        request = _request(fallback_items=(FallbackItemSpec(product_id="2", quantity=1),))
        assert handler.handle(ALICE, request).order.total_amount == "$9.50"

    def test_deleted_product_uses_client_metadata(self):
        handler, _, _, _ = _setup(Cart(user_id="u1"))
        request = _request(fallback_items=(
            FallbackItemSpec(product_id="gone", quantity=1, price="5.00", product_sku="OLD-1"),
        ))
        item = handler.handle(ALICE, request).order.items[0]
        assert item.product_name == "Product"
        assert item.product_sku == "OLD-1"
        assert item.product_image == ""

    def test_deleted_product_without_price_rejected(self):
        handler, _, _, _ = _setup(Cart(user_id="u1"))
        request = _request(fallback_items=(FallbackItemSpec(product_id="gone", quantity=1),))
        with pytest.raises(ValidationError, match="Price is required"):
            handler.handle(ALICE, request)

    def test_live_cart_wins_over_fallback(self):
        handler, _, _, _ = _setup()
        request = _request(fallback_items=(FallbackItemSpec(product_id="2", quantity=1),))
        assert handler.handle(ALICE, request).order.items[0].product_name == "T-shirt"

    def test_cart_untouched_by_fallback_checkout(self):
        handler, _, cart_repo, _ = _setup(Cart(user_id="u1"))
        before = cart_repo.get_for_user("u1")
        request = _request(fallback_items=(FallbackItemSpec(product_id="2", quantity=1),))
        handler.handle(ALICE, request)
        assert cart_repo.get_for_user("u1") == before


class TestEmptyCart:

    def test_empty_cart_and_no_fallback(self):
        handler, order_repo, _, _ = _setup(Cart(user_id="u1"))
        with pytest.raises(EmptyCartError, match="Cart is empty") as exc_info:
            handler.handle(ALICE, _request())
        assert exc_info.value.code == "EMPTY_CART"
        assert order_repo.all() == []

    def test_user_without_cart(self):
        handler, order_repo, _, _ = _setup()
        with pytest.raises(EmptyCartError):
            handler.handle(Principal("u2"), _request())
        assert order_repo.all() == []


class TestInputValidation:

    def test_missing_shipping_info(self):
        handler, _, cart_repo, _ = _setup()
        with pytest.raises(ValidationError, match="shippingInfo and paymentMethod are required"):
            handler.handle(ALICE, _request(shipping_info=None))
        assert not cart_repo.get_for_user("u1").is_empty

    def test_missing_payment_method(self):
        handler, _, _, _ = _setup()
        with pytest.raises(ValidationError, match="are required fields"):
            handler.handle(ALICE, _request(payment_method=None))

    def test_missing_address(self):
        handler, _, _, _ = _setup()
        with pytest.raises(ValidationError, match="recipientName and address"):
            handler.handle(ALICE, _request(shipping_info=ShippingInfoSpec(recipient_name="Kim")))

    def test_invalid_payment_method(self):
        handler, order_repo, _, _ = _setup()
        with pytest.raises(ValidationError, match="Invalid payment method"):
            handler.handle(ALICE, _request(payment_method="bitcoin"))
        assert order_repo.all() == []

    def test_invalid_shipping_method(self):
        handler, _, _, _ = _setup()
        with pytest.raises(ValidationError, match="Invalid shipping method"):
            handler.handle(ALICE, _request(shipping_method="teleport"))

    def test_negative_fee(self):
        handler, _, _, _ = _setup()
        with pytest.raises(ValidationError, match="cannot be negative"):
            handler.handle(ALICE, _request(shipping_fee="-1"))

    def test_session_with_non_card_method(self):
        handler, _, _, _ = _setup()
        with pytest.raises(ValidationError, match="only valid for card payments"):
            handler.handle(ALICE, _request(session_id="cs_1"))

    def test_blank_phone_gets_placeholder(self):
        handler, _, _, _ = _setup()
        dto = handler.handle(ALICE, _request()).order
        assert dto.recipient_phone == "0000000000"


class TestPaymentVerification:

    def test_verified_session_marks_payment_completed(self):
        handler, order_repo, _, _ = _setup(verifier=FakePaymentVerifier([_paid_session()]))
        dto = handler.handle(ALICE, _card_request()).order

        assert dto.status == "pending"
        assert dto.payment_status == "completed"
        assert dto.payment == {
            "type": "card",
            "session_id": "cs_1",
            "payment_intent_id": "pi_1",
            "amount": "50.00",
            "currency": "USD",
            "processor_status": "paid",
        }
        assert order_repo.get_by_id(dto.id).payment_info.is_verified_paid

    def test_unpaid_session_rejected(self):
        session = PaymentSession("cs_1", "unpaid", Decimal("50.00"), "USD", "u1")
        handler, order_repo, cart_repo, _ = _setup(verifier=FakePaymentVerifier([session]))

        with pytest.raises(PaymentNotCompletedError) as exc_info:
            handler.handle(ALICE, _card_request())

        assert exc_info.value.details["payment_status"] == "unpaid"
        assert order_repo.all() == []
        assert not cart_repo.get_for_user("u1").is_empty

    def test_session_of_another_user_rejected(self):
        verifier = FakePaymentVerifier([_paid_session(user_id="u2")])
        handler, order_repo, _, _ = _setup(verifier=verifier)

        with pytest.raises(UserIdMismatchError) as exc_info:
            handler.handle(ALICE, _card_request())
        assert exc_info.value.http_status == 403
        assert order_repo.all() == []

    def test_unknown_session_rejected(self):
        handler, order_repo, _, _ = _setup(verifier=FakePaymentVerifier())
        with pytest.raises(PaymentVerificationError):
            handler.handle(ALICE, _card_request("cs_missing"))
        assert order_repo.all() == []

    def test_provider_outage_is_retryable_and_creates_nothing(self):
        outage = PaymentProviderUnavailableError("Payment provider is unavailable.")
        handler, order_repo, cart_repo, _ = _setup(verifier=FakePaymentVerifier(error=outage))

        with pytest.raises(PaymentProviderUnavailableError) as exc_info:
            handler.handle(ALICE, _card_request())

        assert exc_info.value.retryable
        assert exc_info.value.code == "UNEXPECTED"
        assert order_repo.all() == []
        assert not cart_repo.get_for_user("u1").is_empty

    def test_without_verifier_session_stored_unverified(self, caplog):
        handler, _, _, _ = _setup()
        with caplog.at_level(logging.WARNING):
            dto = handler.handle(ALICE, _card_request()).order

        assert dto.payment_status == "pending"
        assert dto.payment["session_id"] == "cs_1"
        assert dto.payment["amount"] is None
        assert "stored unverified" in caplog.text


class TestIdempotency:

    def test_same_session_returns_same_order(self):
        verifier = FakePaymentVerifier([_paid_session()])
        handler, order_repo, cart_repo, _ = _setup(verifier=verifier)

        first = handler.handle(ALICE, _card_request())
        _refill(cart_repo)
        second = handler.handle(ALICE, _card_request())

        assert first.created
        assert not second.created
        assert second.order.order_number == first.order.order_number
        assert len(order_repo.all()) == 1
        assert verifier.calls == ["cs_1"]
        assert not cart_repo.get_for_user("u1").is_empty

    def test_replay_skips_validation(self):
        handler, _, _, _ = _setup(verifier=FakePaymentVerifier([_paid_session()]))
        first = handler.handle(ALICE, _card_request())
        replay = handler.handle(ALICE, _card_request(shipping_info=None))
        assert replay.order.id == first.order.id

    def test_session_of_another_user_is_not_replayed(self):
        verifier = FakePaymentVerifier([_paid_session()])
        handler, order_repo, _, _ = _setup(verifier=verifier)
        handler.handle(ALICE, _card_request())

        with pytest.raises(UserIdMismatchError, match="User ID mismatch") as exc_info:
            handler.handle(Principal("u2"), _card_request())

        assert exc_info.value.http_status == 403
        assert "order" not in exc_info.value.to_payload()
        assert len(order_repo.all()) == 1
        assert verifier.calls == ["cs_1"]

    def test_owner_checked_again_after_waiting_for_lock(self):
        earlier, alice_repo, _, _ = _setup()
        alice_order = alice_repo.get_by_id(earlier.handle(ALICE, _request()).order.id)

        class _SettledMeanwhile(FakeOrderRepository):
            def __init__(self):
                super().__init__()
                self.lookups = 0

            def find_by_payment_session(self, session_id):
                self.lookups += 1
                return None if self.lookups == 1 else alice_order

        bob_cart = Cart(user_id="u2")
        bob_cart.add_item("1", Quantity(2), Money.of("25.00"))
        order_repo = _SettledMeanwhile()
        handler, _, cart_repo, _ = _setup(
            bob_cart,
            verifier=FakePaymentVerifier([_paid_session(user_id="u2")]),
            order_repo=order_repo,
        )

        with pytest.raises(UserIdMismatchError):
            handler.handle(Principal("u2"), _card_request())
        assert order_repo.lookups == 2
        assert order_repo.all() == []
        assert not cart_repo.get_for_user("u2").is_empty


class TestAmountReconciliation:

    def test_two_cents_short_rejected(self):
        verifier = FakePaymentVerifier([_paid_session(amount="49.98")])
        handler, order_repo, cart_repo, _ = _setup(verifier=verifier)

        with pytest.raises(AmountMismatchError) as exc_info:
            handler.handle(ALICE, _card_request())

        details = exc_info.value.details
        assert details["payment_amount"] == "49.98"
        assert details["order_amount"] == "50.00"
        assert details["difference"] == "0.02"
        assert exc_info.value.to_payload()["error"] == "AMOUNT_MISMATCH"
        assert order_repo.all() == []
        assert not cart_repo.get_for_user("u1").is_empty

    def test_half_cent_within_tolerance(self):
        verifier = FakePaymentVerifier([_paid_session(amount="49.995")])
        handler, _, _, _ = _setup(verifier=verifier)
        assert handler.handle(ALICE, _card_request()).created

    def test_exactly_one_cent_within_tolerance(self):
        verifier = FakePaymentVerifier([_paid_session(amount="50.01")])
        handler, _, _, _ = _setup(verifier=verifier)
        assert handler.handle(ALICE, _card_request()).created

    def test_fee_counts_towards_total(self):
        verifier = FakePaymentVerifier([_paid_session(amount="53.00")])
        handler, _, _, _ = _setup(verifier=verifier)
        dto = handler.handle(ALICE, _card_request(shipping_fee="3")).order
        assert dto.total_amount == "$53.00"


class TestDuplicateGuard:

    def test_same_cart_ten_seconds_later_rejected(self):
        handler, order_repo, cart_repo, clock = _setup(_cart(("1", 1, "25.00")))
        first = handler.handle(ALICE, _request()).order

        _refill(cart_repo, ("1", 1, "25.00"))
        clock.advance(seconds=10)
        with pytest.raises(DuplicateOrderError) as exc_info:
            handler.handle(ALICE, _request())

        assert exc_info.value.http_status == 409
        assert exc_info.value.details["existing_order_number"] == first.order_number
        assert len(order_repo.all()) == 1
        assert not cart_repo.get_for_user("u1").is_empty

    def test_same_cart_ten_minutes_later_accepted(self):
        handler, order_repo, cart_repo, clock = _setup(_cart(("1", 1, "25.00")))
        handler.handle(ALICE, _request())

        _refill(cart_repo, ("1", 1, "25.00"))
        clock.advance(minutes=10)
        assert handler.handle(ALICE, _request()).created
        assert len(order_repo.all()) == 2

    def test_sixty_seconds_is_outside_window(self):
        handler, _, cart_repo, clock = _setup()
        handler.handle(ALICE, _request())

        _refill(cart_repo)
        clock.advance(seconds=60)
        assert handler.handle(ALICE, _request()).created

    def test_different_total_accepted(self):
        handler, _, cart_repo, clock = _setup()
        handler.handle(ALICE, _request())

        _refill(cart_repo, ("1", 1, "25.00"))
        clock.advance(seconds=5)
        assert handler.handle(ALICE, _request()).created

    def test_different_item_count_accepted(self):
        handler, _, cart_repo, clock = _setup(_cart(("1", 2, "25.00")))
        handler.handle(ALICE, _request())

        _refill(cart_repo, ("1", 1, "25.00"), ("2", 1, "25.00"))
        clock.advance(seconds=5)
        assert handler.handle(ALICE, _request()).created

    def test_other_users_orders_ignored(self):
        handler, _, cart_repo, clock = _setup()
        handler.handle(ALICE, _request())

        cart = _cart(("1", 2, "25.00"))
        cart.user_id = "u2"
        cart_repo.save(cart)
        clock.advance(seconds=5)
        assert handler.handle(Principal("u2"), _request()).created

    def test_paid_order_not_a_candidate(self):
        handler, order_repo, cart_repo, clock = _setup()
        first = handler.handle(ALICE, _request()).order
        order = order_repo.get_by_id(first.id)
        order.complete_payment()
        order_repo.save(order)

        _refill(cart_repo)
        clock.advance(seconds=5)
        assert handler.handle(ALICE, _request()).created


class TestPersistenceFaults:

    def test_order_insert_failure_releases_cart(self):

        class _BrokenOrders(FakeOrderRepository):
            def save(self, order):
                raise RuntimeError("store down")

        handler, _, cart_repo, _ = _setup(order_repo=_BrokenOrders())

        with pytest.raises(DomainException, match="unexpected error") as exc_info:
            handler.handle(ALICE, _request())
        assert isinstance(exc_info.value.__cause__, RuntimeError)

        cart = cart_repo.get_for_user("u1")
        assert not cart.is_empty
        assert cart.pending_clear_order is None

    def test_cart_clear_failure_keeps_order_and_marker(self):

        class _NoClears(FakeCartRepository):
            def save(self, cart):
                if cart.is_empty:
                    raise RuntimeError("store down")
                super().save(cart)

        handler, order_repo, cart_repo, _ = _setup(cart_repo=_NoClears())
        dto = handler.handle(ALICE, _request()).order

        assert order_repo.get_by_id(dto.id) is not None
        cart = cart_repo.get_for_user("u1")
        assert cart.pending_clear_order == dto.order_number
        assert not cart.is_empty

    def test_unexpected_error_logged_and_reported_as_unexpected(self, caplog):

        class _BrokenCatalog(FakeProductRepository):
            def get_by_id(self, product_id):
                raise RuntimeError("catalog down")

        handler, _, _, _ = _setup(product_repo=_BrokenCatalog())
        with caplog.at_level(logging.ERROR):
            with pytest.raises(DomainException) as exc_info:
                handler.handle(ALICE, _request())

        assert "Unexpected error creating order for user u1" in caplog.text
        assert str(exc_info.value.__cause__) == "catalog down"
        payload = exc_info.value.to_payload()
        assert payload["success"] is False
        assert payload["error"] == "UNEXPECTED"
        assert exc_info.value.http_status == 500


class TestCheckoutLock:

    def test_user_lock_dropped_once_released(self):
        lock = InProcessCheckoutLock()
        with lock.hold("u1"):
            assert lock.active_users() == ["u1"]
        assert lock.active_users() == []

    def test_cart_read_and_clear_happen_under_user_lock(self):
        events: list[str] = []

        class _RecordingLock(CheckoutLock):
            @contextmanager
            def hold(self, user_id):
                events.append(f"acquire {user_id}")
                yield
                events.append(f"release {user_id}")

        class _RecordingCarts(FakeCartRepository):
            def get_for_user(self, user_id):
                events.append("read cart")
                return super().get_for_user(user_id)

        handler, _, _, _ = _setup(cart_repo=_RecordingCarts(), checkout_lock=_RecordingLock())
        events.clear()
        handler.handle(ALICE, _request())

        assert events == ["acquire u1", "read cart", "release u1"]

    def test_concurrent_checkouts_consume_cart_once(self):
        handler, order_repo, _, _ = _setup()
        barrier = threading.Barrier(4)
        outcomes: list[str] = []

        def checkout():
            barrier.wait()
            try:
                handler.handle(ALICE, _request())
                outcomes.append("created")
            except (EmptyCartError, DuplicateOrderError) as exc:
                outcomes.append(exc.code)

        threads = [threading.Thread(target=checkout) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("created") == 1
        assert len(order_repo.all()) == 1


class TestCheckoutPayload:

    def test_null_fees_default_to_zero(self):
        request = CheckoutRequest.from_payload({
            "shippingInfo": {"recipientName": "Kim", "address": "1 Main St"},
            "paymentMethod": "cash",
            "shippingFee": None,
            "discountAmount": None,
        })
        assert (request.shipping_fee, request.discount_amount) == ("0", "0")

        handler, _, _, _ = _setup()
        dto = handler.handle(ALICE, request).order
        assert dto.total_amount == "$50.00"

    def test_fees_and_session_read_from_body(self):
        request = CheckoutRequest.from_payload({
            "paymentMethod": "card",
            "shippingFee": 3.5,
            "discountAmount": 0,
            "paymentInfo": {"sessionId": "cs_9"},
        })
        assert (request.shipping_fee, request.discount_amount) == ("3.5", "0")
        assert request.session_id == "cs_9"
