"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

import logging

from storefront.application.checkout_lock import CheckoutLock, InProcessCheckoutLock
from storefront.domain.service.payment_verifier import PaymentVerifier
from storefront.infrastructure import config
from storefront.infrastructure.payment.stripe_verifier import StripePaymentVerifier
from storefront.infrastructure.persistence.json_cart_repository import (
    JsonCartRepository,
)
from storefront.infrastructure.persistence.json_order_repository import (
    JsonOrderRepository,
)
from storefront.infrastructure.persistence.json_product_repository import (
    JsonProductRepository,
)

logger = logging.getLogger(__name__)

# One lock per process, shared by every checkout
_CHECKOUT_LOCK = InProcessCheckoutLock()


def product_repository() -> JsonProductRepository:
    return JsonProductRepository(config.DATA_DIR / "products.json")


def order_repository() -> JsonOrderRepository:
    return JsonOrderRepository(config.DATA_DIR / "orders.json")


def cart_repository() -> JsonCartRepository:
    return JsonCartRepository(config.DATA_DIR / "carts.json")


def checkout_lock() -> CheckoutLock:
    return _CHECKOUT_LOCK


def payment_verifier() -> PaymentVerifier | None:
    if not config.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY not set; card sessions will not be verified")
        return None
    return StripePaymentVerifier(
        secret_key=config.STRIPE_SECRET_KEY,
        api_base=config.STRIPE_API_BASE,
        timeout=config.PAYMENT_TIMEOUT_SECONDS,
    )
