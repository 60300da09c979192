"""Stripe-backed PaymentVerifier.

Reads a Checkout Session over the REST API.  Amounts arrive in minor
units and are converted to major units; ``metadata.userId`` carries the
principal the session was opened for.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

import httpx

from storefront.domain.exceptions import (
    PaymentProviderUnavailableError,
    PaymentVerificationError,
)
from storefront.domain.service.payment_verifier import PaymentSession, PaymentVerifier

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.stripe.com"
DEFAULT_TIMEOUT = 10.0  # seconds


class StripePaymentVerifier(PaymentVerifier):

    def __init__(
        self,
        secret_key: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_base,
            auth=(secret_key, ""),
            timeout=timeout,
            transport=transport,
        )

    def retrieve_session(self, session_id: str) -> PaymentSession:
        try:
            response = self._client.get(f"/v1/checkout/sessions/{session_id}")
        except httpx.TimeoutException as exc:
            logger.error("Timed out retrieving payment session %s", session_id)
            raise PaymentProviderUnavailableError(
                "Payment provider did not respond in time. Please try again."
            ) from exc
        except httpx.TransportError as exc:
            logger.error("Payment provider unreachable: %s", exc)
            raise PaymentProviderUnavailableError(
                "Payment provider is unavailable. Please try again."
            ) from exc

        if response.status_code >= 500:
            logger.error(
                "Payment provider error %d for session %s",
                response.status_code,
                session_id,
            )
            raise PaymentProviderUnavailableError(
                "Payment provider is unavailable. Please try again.",
                provider_status=response.status_code,
            )
        if response.status_code >= 400:
            logger.warning(
                "Payment session %s rejected by provider (%d)",
                session_id,
                response.status_code,
            )
            raise PaymentVerificationError(
                "Payment verification failed. Invalid payment session.",
                provider_status=response.status_code,
            )

        try:
            return self._to_session(response.json())
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            logger.error("Unreadable payment session body for %s: %s", session_id, exc)
            raise PaymentProviderUnavailableError(
                "Payment provider returned an unreadable response. Please try again."
            ) from exc

    def close(self) -> None:
        self._client.close()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    @staticmethod
    def _to_session(raw: dict) -> PaymentSession:
        metadata = raw.get("metadata") or {}
        intent = raw.get("payment_intent")
        if isinstance(intent, dict):
            intent = intent.get("id")
        amount_total = raw.get("amount_total") or 0
        return PaymentSession(
            session_id=raw["id"],
            payment_status=raw.get("payment_status") or "unpaid",
            amount_captured=Decimal(amount_total) / 100,
            currency=(raw.get("currency") or "").upper(),
            principal_id=metadata.get("userId"),
            payment_reference_id=intent,
        )
