"""Abstract repository for the Order aggregate (the order ledger)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from storefront.domain.model.order import Order, OrderStatus, PaymentStatus


class OrderRepository(ABC):

    @abstractmethod
    def next_id(self) -> int:
        """Generate the next unique order ID."""

    @abstractmethod
    def get_by_id(self, order_id: int) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def get_by_order_number(self, order_number: str) -> Order | None:
        """Return an order by its human-facing number, or None."""

    @abstractmethod
    def exists_order_number(self, order_number: str) -> bool:
        """True if any order already uses *order_number*."""

    @abstractmethod
    def find_by_payment_session(self, session_id: str) -> Order | None:
        """Return the order recorded against a processor session, or None."""

    @abstractmethod
    def find_recent_by_user(
        self,
        user_id: str,
        since: datetime,
        statuses: Iterable[str],
        limit: int = 5,
    ) -> list[Order]:
        """Orders of *user_id* created at or after *since*, newest first.

        *statuses* are raw status values so callers may match values the
        enum does not define.
        """

    @abstractmethod
    def search(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> list[Order]:
        """Filtered page of orders, newest first."""

    @abstractmethod
    def count(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> int:
        """Number of orders matching the same filters as ``search``."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist a new or updated order.

        Raises OrderNumberGenerationError if a new order reuses an
        existing order number.
        """
