"""Per-test data reset, written straight to the data store."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable

from fedquery.harness.errors import DataSeedingError
from fedquery.services.database.interface import DatabaseInterface
from fedquery.services.logger.interface import LoggingInterface

PRODUCTS_TABLE = "products"

PRODUCTS_DDL = (
    "CREATE TABLE products ("
    "id INT PRIMARY KEY, "
    "name VARCHAR(255) NOT NULL, "
    "category VARCHAR(255), "
    "price NUMERIC(10, 2), "
    "stock_quantity INT)"
)

SEED_PRODUCTS: tuple[dict[str, Any], ...] = (
    {"id": 1, "name": "Laptop Pro", "category": "Electronics", "price": Decimal("1200.50"), "stock_quantity": 50},
    {"id": 2, "name": "Coffee Mug", "category": "Kitchen", "price": Decimal("15.75"), "stock_quantity": 200},
    {"id": 3, "name": "Gaming Mouse", "category": "Electronics", "price": Decimal("75.00"), "stock_quantity": 150},
    {"id": 4, "name": "Desk Lamp", "category": "Office", "price": Decimal("45.99"), "stock_quantity": 75},
    {"id": 5, "name": "Notebook Basic", "category": "Office", "price": Decimal("5.25"), "stock_quantity": 500},
)


class DataSeeder:
    """Drops, recreates and fills the products table.

    Each ``reset`` opens a fresh connection from *connect_db* and closes it
    afterwards, so a broken connection never leaks into the next test.
    """

    def __init__(
        self,
        connect_db: Callable[[], DatabaseInterface],
        log: LoggingInterface,
        rows: tuple[dict[str, Any], ...] = SEED_PRODUCTS,
    ) -> None:
        self._connect_db = connect_db
        self._log = log
        self._rows = rows

    def reset(self) -> int:
        """Return the number of rows inserted. Raises ``DataSeedingError``."""
        db: DatabaseInterface | None = None
        try:
            db = self._connect_db()
            db.connect()
            db.execute(f"DROP TABLE IF EXISTS {PRODUCTS_TABLE}")
            db.execute(PRODUCTS_DDL)
            inserted = db.bulk_insert(PRODUCTS_TABLE, [dict(r) for r in self._rows])
        except DataSeedingError:
            raise
        except Exception as exc:
            self._log.error("Data reset failed", table=PRODUCTS_TABLE, error=str(exc))
            raise DataSeedingError(
                f"resetting table '{PRODUCTS_TABLE}' failed: {type(exc).__name__}: {exc}"
            ) from exc
        finally:
            if db is not None and db.is_connected():
                db.disconnect()
        self._log.info("Data reset", table=PRODUCTS_TABLE, rows=inserted)
        return inserted
