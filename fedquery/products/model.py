from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category: str | None = None
    price: Decimal | None = None
    stock_quantity: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Product:
        price = row.get("price")
        if price is not None and not isinstance(price, Decimal):
            price = Decimal(str(price))
        stock = row.get("stock_quantity")
        return cls(
            id=int(row["id"]),
            name=row["name"],
            category=row.get("category"),
            price=price,
            stock_quantity=int(stock) if stock is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
