"""Catalog stored as a JSON array of product records."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import DEFAULT_CURRENCY, Money
from storefront.domain.repository.product_repository import ProductRepository


class JsonProductRepository(ProductRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        if not file_path.exists():
            file_path.parent.mkdir(parents=True, exist_ok=True)
            self._write([])

    def get_by_id(self, product_id: str) -> Product | None:
        raw = self._find(lambda r: r["id"] == str(product_id))
        return None if raw is None else self._to_domain(raw)

    def get_by_sku(self, sku: str) -> Product | None:
        wanted = sku.strip().lower()
        raw = self._find(lambda r: r["sku"].lower() == wanted)
        return None if raw is None else self._to_domain(raw)

    def list_all(self) -> list[Product]:
        products = [self._to_domain(raw) for raw in self._read()]
        products.sort(key=lambda p: (p.created_at, _numeric(p.id)), reverse=True)
        return products

    def next_id(self) -> str:
        return str(max((_numeric(raw["id"]) for raw in self._read()), default=0) + 1)

    def save(self, product: Product) -> None:
        records = [raw for raw in self._read() if raw["id"] != product.id]
        records.append(self._to_raw(product))
        records.sort(key=lambda raw: _numeric(raw["id"]))
        self._write(records)

    def delete(self, product_id: str) -> bool:
        records = self._read()
        kept = [raw for raw in records if raw["id"] != str(product_id)]
        if len(kept) == len(records):
            return False
        self._write(kept)
        return True

    # --- Records --------------------------------------------------------------

    @staticmethod
    def _to_raw(product: Product) -> dict:
        return {
            "id": product.id,
            "sku": product.sku,
            "name": product.name,
            "price": str(product.price.amount),
            "currency": product.price.currency,
            "category": product.category,
            "image": product.image,
            "images": list(product.images),
            "description": product.description,
            "created_at": product.created_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> Product:
        product = Product(
            id=str(raw["id"]),
            sku=raw["sku"],
            name=raw["name"],
            price=Money(Decimal(raw["price"]), raw.get("currency", DEFAULT_CURRENCY)),
            category=raw.get("category", ""),
            image=raw.get("image", ""),
            images=list(raw.get("images") or []),
            description=raw.get("description") or "",
        )
        if raw.get("created_at"):
            product.created_at = datetime.fromisoformat(raw["created_at"])
        return product

    def _find(self, predicate) -> dict | None:
        return next((raw for raw in self._read() if predicate(raw)), None)

    def _read(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _write(self, records: list[dict]) -> None:
        self._file_path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")


def _numeric(product_id: str) -> int:
    return int(product_id) if str(product_id).isdigit() else 0
