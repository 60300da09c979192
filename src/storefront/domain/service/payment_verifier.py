"""Payment Verifier: the port to the external card processor.

Given a processor session handle, a verifier reports what the processor
says happened.  That answer is untrusted input: checkout reconciles it
against its own totals and never treats it as sole authorization.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    payment_status: str
    amount_captured: Decimal
    currency: str
    principal_id: str | None = None
    payment_reference_id: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class PaymentVerifier(ABC):

    @abstractmethod
    def retrieve_session(self, session_id: str) -> PaymentSession:
        """Fetch processor-side state of a checkout session.

        Raises PaymentVerificationError when the processor rejects the
        handle, PaymentProviderUnavailableError when it cannot answer.
        """

    def close(self) -> None:
        """Release connections held by the verifier; nothing to do by default."""
