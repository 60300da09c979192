"""Domain service: order number generation.

Order numbers are ``ORD`` + UTC timestamp (``YYYYMMDDHHMMSS``) + a random
4-digit suffix.  Candidates are checked against the ledger and retried on
collision; the repository's uniqueness check on insert remains the real
backstop; retrying here just keeps that error away from customers.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable
from datetime import datetime, timezone

from storefront.domain.exceptions import OrderNumberGenerationError
from storefront.domain.repository.order_repository import OrderRepository

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10
ORDER_NUMBER_PATTERN = re.compile(r"^ORD\d{14}\d{4}$")


def format_order_number(when: datetime, suffix: int) -> str:
    stamp = when.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"ORD{stamp}{suffix:04d}"


class OrderNumberGenerator:

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._order_repo = order_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.SystemRandom()
        self._max_attempts = max_attempts

    def generate(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            candidate = format_order_number(self._clock(), self._rng.randint(1000, 9999))
            if not self._order_repo.exists_order_number(candidate):
                return candidate
            logger.debug("Order number %s taken (attempt %d)", candidate, attempt)

        logger.error(
            "Failed to generate a unique order number after %d attempts",
            self._max_attempts,
        )
        raise OrderNumberGenerationError(
            "Failed to generate order number. Please try again.",
            attempts=self._max_attempts,
        )
