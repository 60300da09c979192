"""JSON-file-backed implementation of CartRepository."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from storefront.domain.model.cart import Cart, CartItem
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.repository.cart_repository import CartRepository


class JsonCartRepository(CartRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    # --- CartRepository interface ---------------------------------------------

    def get_for_user(self, user_id: str) -> Cart | None:
        for raw in self._load_raw():
            if raw["user_id"] == user_id:
                return self._to_domain(raw)
        return None

    def list_pending_clear(self) -> list[Cart]:
        return [
            self._to_domain(raw)
            for raw in self._load_raw()
            if raw.get("pending_clear_order")
        ]

    def save(self, cart: Cart) -> None:
        carts = self._load_raw()
        for i, raw in enumerate(carts):
            if raw["user_id"] == cart.user_id:
                carts[i] = self._to_raw(cart)
                break
        else:
            carts.append(self._to_raw(cart))
        self._persist_raw(carts)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(cart: Cart) -> dict:
        return {
            "user_id": cart.user_id,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity.value,
                    "unit_price": str(item.unit_price.amount),
                    "currency": item.unit_price.currency,
                    "color": item.color,
                    "size": item.size,
                }
                for item in cart.items
            ],
            "total_items": cart.total_items,
            "total_amount": str(cart.total_amount.amount),
            "pending_clear_order": cart.pending_clear_order,
            "updated_at": cart.updated_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> Cart:
        items = [
            CartItem(
                id=i["id"],
                product_id=i["product_id"],
                quantity=Quantity(i["quantity"]),
                unit_price=Money(Decimal(i["unit_price"]), i.get("currency", "USD")),
                color=i.get("color"),
                size=i.get("size"),
            )
            for i in raw["items"]
        ]
        return Cart(
            user_id=raw["user_id"],
            items=items,
            total_items=raw["total_items"],
            total_amount=Money(Decimal(raw["total_amount"])),
            pending_clear_order=raw.get("pending_clear_order"),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _persist_raw(self, carts: list[dict]) -> None:
        self._file_path.write_text(
            json.dumps(carts, indent=2) + "\n", encoding="utf-8"
        )

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
