"""Per-user advisory lock around checkout.

Checkout reads the cart, computes totals, inserts an order and clears the
cart.  Two concurrent checkouts by the same user must not interleave in
that window, or both could consume the same cart.
"""

from __future__ import annotations

import threading
import weakref
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager


class CheckoutLock(ABC):

    @abstractmethod
    def hold(self, user_id: str):
        """Context manager that holds the lock for *user_id*."""


class InProcessCheckoutLock(CheckoutLock):
    """One ``threading.Lock`` per user, for a single process.

    A user's lock lives only while some checkout holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
        with lock:
            yield

    def active_users(self) -> list[str]:
        return list(self._locks.keys())
