"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so outer layers can catch them uniformly.  Each class carries a machine
error code and the HTTP status an API layer would answer with, so callers
can tell "fix your input" apart from "you already did this" or "try again".
"""

from __future__ import annotations

from typing import Any


class DomainException(Exception):
    """Base class for all domain errors."""

    code = "UNEXPECTED"
    http_status = 500
    retryable = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        """Error body in the shape the storefront client expects."""
        return {
            "success": False,
            "message": self.message,
            "error": self.code,
            **self.details,
        }


class ValidationError(DomainException):
    """A business rule or invariant was violated."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidTransitionError(ValidationError):
    """A lifecycle operation was attempted from a status that forbids it."""

    code = "INVALID_STATUS_TRANSITION"


class EmptyCartError(ValidationError):
    """Neither the live cart nor the fallback list yielded any items."""

    code = "EMPTY_CART"


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class PermissionDeniedError(DomainException):
    """The principal is not allowed to perform the operation."""

    code = "FORBIDDEN"
    http_status = 403


# --- Trust-boundary faults -----------------------------------------------------


class PaymentNotCompletedError(DomainException):
    code = "PAYMENT_NOT_COMPLETED"
    http_status = 400


class PaymentVerificationError(DomainException):
    """The processor rejected the session handle (unknown, malformed, ...)."""

    code = "PAYMENT_VERIFICATION_FAILED"
    http_status = 400


class UserIdMismatchError(DomainException):
    code = "USER_ID_MISMATCH"
    http_status = 403


class AmountMismatchError(DomainException):
    code = "AMOUNT_MISMATCH"
    http_status = 400


# --- Duplication / generation / upstream faults -------------------------------


class DuplicateOrderError(DomainException):
    code = "DUPLICATE_ORDER_DETECTED"
    http_status = 409


class DuplicateProductError(DomainException):
    """Another catalog entry already uses the SKU."""

    code = "DUPLICATE_SKU"
    http_status = 409


class OrderNumberGenerationError(DomainException):
    code = "ORDER_NUMBER_GENERATION_FAILED"
    http_status = 500


class PaymentProviderUnavailableError(DomainException):
    """The processor could not be reached or answered with a server error.

    Never interpreted as a payment failure: the caller may retry.
    """

    code = "UNEXPECTED"
    http_status = 503
    retryable = True
