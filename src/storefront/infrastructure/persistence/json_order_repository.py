"""JSON-file-backed implementation of OrderRepository."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from storefront.domain.exceptions import OrderNumberGenerationError
from storefront.domain.model.order import (
    CardPaymentInfo,
    ManualPaymentInfo,
    Order,
    OrderItem,
    OrderStatus,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
    ShippingInfo,
    ShippingMethod,
    StatusChange,
)
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.repository.order_repository import OrderRepository


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    # --- OrderRepository interface --------------------------------------------

    def next_id(self) -> int:
        orders = self._load_raw()
        if not orders:
            return 1
        return max(o["id"] for o in orders) + 1

    def get_by_id(self, order_id: int) -> Order | None:
        for raw in self._load_raw():
            if raw["id"] == order_id:
                return self._to_domain(raw)
        return None

    def get_by_order_number(self, order_number: str) -> Order | None:
        for raw in self._load_raw():
            if raw["order_number"] == order_number:
                return self._to_domain(raw)
        return None

    def exists_order_number(self, order_number: str) -> bool:
        return any(raw["order_number"] == order_number for raw in self._load_raw())

    def find_by_payment_session(self, session_id: str) -> Order | None:
        for raw in self._load_raw():
            if raw["payment_info"].get("session_id") == session_id:
                return self._to_domain(raw)
        return None

    def find_recent_by_user(
        self,
        user_id: str,
        since: datetime,
        statuses: Iterable[str],
        limit: int = 5,
    ) -> list[Order]:
        wanted = set(statuses)
        matches = [
            raw
            for raw in self._load_raw()
            if raw["user_id"] == user_id
            and raw["status"] in wanted
            and datetime.fromisoformat(raw["created_at"]) >= since
        ]
        return [self._to_domain(raw) for raw in self._newest_first(matches)[:limit]]

    def search(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> list[Order]:
        matches = self._filter(user_id, status, payment_status)
        page = self._newest_first(matches)[skip : skip + limit]
        return [self._to_domain(raw) for raw in page]

    def count(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> int:
        return len(self._filter(user_id, status, payment_status))

    def save(self, order: Order) -> None:
        orders = self._load_raw()

        if order.id is None:
            # Uniqueness backstop for the order number
            if any(raw["order_number"] == order.order_number for raw in orders):
                raise OrderNumberGenerationError(
                    "Failed to generate order number. Please try again.",
                    order_number=order.order_number,
                )
            order.id = self.next_id()

        # Upsert: replace if exists, otherwise append
        replaced = False
        for i, raw in enumerate(orders):
            if raw["id"] == order.id:
                orders[i] = self._to_raw(order)
                replaced = True
                break
        if not replaced:
            orders.append(self._to_raw(order))

        self._persist_raw(orders)

    # --- Queries over raw records ---------------------------------------------

    def _filter(
        self,
        user_id: str | None,
        status: OrderStatus | None,
        payment_status: PaymentStatus | None,
    ) -> list[dict]:
        return [
            raw
            for raw in self._load_raw()
            if (user_id is None or raw["user_id"] == user_id)
            and (status is None or raw["status"] == status.value)
            and (payment_status is None or raw["payment_status"] == payment_status.value)
        ]

    @staticmethod
    def _newest_first(records: list[dict]) -> list[dict]:
        return sorted(
            records,
            key=lambda raw: (datetime.fromisoformat(raw["created_at"]), raw["id"]),
            reverse=True,
        )

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        shipping = order.shipping_info
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "payment_method": order.payment_method.value,
            "payment_info": _payment_info_to_raw(order.payment_info),
            "shipping_method": order.shipping_method.value,
            "shipping_fee": str(order.shipping_fee.amount),
            "discount_amount": str(order.discount_amount.amount),
            "currency": order.shipping_fee.currency,
            "shipping_info": {
                "recipient_name": shipping.recipient_name,
                "recipient_phone": shipping.recipient_phone,
                "address": shipping.address,
                "email": shipping.email,
                "apartment": shipping.apartment,
                "city": shipping.city,
                "state": shipping.state,
                "postal_code": shipping.postal_code,
                "delivery_request": shipping.delivery_request,
            },
            "items": [
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "product_sku": item.product_sku,
                    "product_image": item.product_image,
                    "quantity": item.quantity.value,
                    "unit_price": str(item.unit_price.amount),
                    "currency": item.unit_price.currency,
                    "color": item.color,
                    "size": item.size,
                }
                for item in order.items
            ],
            "created_at": order.created_at.isoformat(),
            "updated_at": order.updated_at.isoformat(),
            "payment_date": _iso(order.payment_date),
            "shipped_at": _iso(order.shipped_at),
            "delivered_at": _iso(order.delivered_at),
            "cancelled_at": _iso(order.cancelled_at),
            "refunded_at": _iso(order.refunded_at),
            "tracking_number": order.tracking_number,
            "admin_notes": order.admin_notes,
            "cancel_reason": order.cancel_reason,
            "refund_reason": order.refund_reason,
            "history": [
                {
                    "at": change.at.isoformat(),
                    "from_status": change.from_status.value,
                    "to_status": change.to_status.value,
                    "actor": change.actor,
                    "via": change.via,
                    "note": change.note,
                }
                for change in order.history
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        currency = raw.get("currency", "USD")
        items = [
            OrderItem(
                product_id=i["product_id"],
                product_name=i["product_name"],
                product_sku=i.get("product_sku", ""),
                product_image=i.get("product_image", ""),
                quantity=Quantity(i["quantity"]),
                unit_price=Money(Decimal(i["unit_price"]), i.get("currency", "USD")),
                color=i.get("color"),
                size=i.get("size"),
            )
            for i in raw["items"]
        ]
        # Stored shipping info was validated on the way in
        shipping = ShippingInfo(**raw["shipping_info"])
        return Order(
            id=raw["id"],
            order_number=raw["order_number"],
            user_id=raw["user_id"],
            items=items,
            shipping_info=shipping,
            payment_method=PaymentMethod(raw["payment_method"]),
            payment_info=_payment_info_to_domain(raw["payment_info"]),
            shipping_method=ShippingMethod(raw["shipping_method"]),
            shipping_fee=Money(Decimal(raw["shipping_fee"]), currency),
            discount_amount=Money(Decimal(raw["discount_amount"]), currency),
            status=OrderStatus(raw["status"]),
            payment_status=PaymentStatus(raw["payment_status"]),
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
            payment_date=_parse_ts(raw.get("payment_date")),
            shipped_at=_parse_ts(raw.get("shipped_at")),
            delivered_at=_parse_ts(raw.get("delivered_at")),
            cancelled_at=_parse_ts(raw.get("cancelled_at")),
            refunded_at=_parse_ts(raw.get("refunded_at")),
            tracking_number=raw.get("tracking_number"),
            admin_notes=raw.get("admin_notes"),
            cancel_reason=raw.get("cancel_reason"),
            refund_reason=raw.get("refund_reason"),
            history=[
                StatusChange(
                    at=datetime.fromisoformat(h["at"]),
                    from_status=OrderStatus(h["from_status"]),
                    to_status=OrderStatus(h["to_status"]),
                    actor=h.get("actor"),
                    via=h.get("via", "transition"),
                    note=h.get("note", ""),
                )
                for h in raw.get("history", [])
            ],
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _persist_raw(self, orders: list[dict]) -> None:
        self._file_path.write_text(
            json.dumps(orders, indent=2) + "\n", encoding="utf-8"
        )

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _payment_info_to_raw(info: PaymentInfo) -> dict:
    if isinstance(info, CardPaymentInfo):
        return {
            "type": "card",
            "session_id": info.session_id,
            "payment_intent_id": info.payment_intent_id,
            "amount": None if info.amount is None else str(info.amount),
            "currency": info.currency,
            "processor_status": info.processor_status,
        }
    return {"type": "manual", "reference": info.reference}


def _payment_info_to_domain(raw: dict) -> PaymentInfo:
    if raw.get("type") == "card":
        return CardPaymentInfo(
            session_id=raw.get("session_id"),
            payment_intent_id=raw.get("payment_intent_id"),
            amount=None if raw.get("amount") is None else Decimal(raw["amount"]),
            currency=raw.get("currency"),
            processor_status=raw.get("processor_status"),
        )
    return ManualPaymentInfo(reference=raw.get("reference"))
