"""Product repository: the two federated reads the application exposes."""

from __future__ import annotations

from fedquery.config.settings import QueryEngineSettings
from fedquery.products.model import Product
from fedquery.services.logger.interface import LoggingInterface
from fedquery.services.query_engine.interface import QueryEngineError, QueryEngineInterface
from fedquery.services.secrets.interface import SecretsInterface

PRODUCT_COLUMNS = "id, name, category, price, stock_quantity"


class ProductQueryError(Exception):
    pass


class ProductRepository:
    def __init__(
        self,
        engine: QueryEngineInterface,
        settings: QueryEngineSettings,
        log: LoggingInterface,
    ) -> None:
        self._engine = engine
        self._settings = settings
        self._log = log
        self._table = settings.qualified("products")
        log.info("Product repository ready", url=settings.url, user=settings.user, table=self._table)

    def find_all(self) -> list[Product]:
        return self._query(f"SELECT {PRODUCT_COLUMNS} FROM {self._table}")

    def find_by_category(self, category: str) -> list[Product]:
        return self._query(
            f"SELECT {PRODUCT_COLUMNS} FROM {self._table} WHERE category = ?", [category]
        )

    def close(self) -> None:
        self._engine.disconnect()

    def _query(self, query: str, params: list[str] | None = None) -> list[Product]:
        self._log.debug("Executing query", query=query, params=params)
        try:
            rows = self._engine.fetch_all(query, params)
        except QueryEngineError as exc:
            self._log.error(
                "Product query failed",
                query=query,
                error=str(exc),
                error_name=exc.error_name,
            )
            raise ProductQueryError(f"Query engine request failed: {exc}") from exc
        products = [Product.from_row(r) for r in rows]
        self._log.debug("Query returned rows", count=len(products))
        return products


def build_product_repository(
    secrets: SecretsInterface, log: LoggingInterface
) -> ProductRepository:
    """Build a repository that talks to Trino with settings read from *secrets*."""
    from fedquery.services.query_engine.trino_query_engine import TrinoQueryEngine

    settings = QueryEngineSettings.from_secrets(secrets)
    return ProductRepository(TrinoQueryEngine(secrets), settings, log)
