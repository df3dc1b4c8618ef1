"""Product API service.

Endpoints::

    GET /products                 -> every product
    GET /products?category=Office -> products in one category (possibly [])

Both read through the query engine. Engine failures answer 502 with a JSON
error body.
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal

from aiohttp import web

from fedquery.config.context import ModuleConfig
from fedquery.config.settings import QueryEngineSettings
from fedquery.modules.base import AsyncModule
from fedquery.products.repository import ProductQueryError, ProductRepository
from fedquery.services.lifecycle.lifecycle_manager import LifecycleManager
from fedquery.services.logger.factory import LoggerFactory
from fedquery.services.logger.interface import LoggingInterface
from fedquery.services.query_engine.interface import QueryEngineInterface
from fedquery.services.secrets.interface import SecretsInterface


def _json_default(obj: object) -> float:
    if isinstance(obj, Decimal):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _dumps(obj: object) -> str:
    return json.dumps(obj, default=_json_default)


class ProductApiModule(AsyncModule):
    log: LoggingInterface

    def __init__(
        self,
        config: ModuleConfig,
        logger: LoggerFactory,
        engine: QueryEngineInterface,
        secrets: SecretsInterface,
        lifecycle: LifecycleManager,
    ) -> None:
        self.config = config
        self.logger = logger
        self.engine = engine
        self.secrets = secrets
        self.lifecycle = lifecycle
        self._runner: web.AppRunner | None = None

    async def initialize(self) -> None:
        self.log = self.logger.create(component="product_api")
        self.host = self.config.get("host", "0.0.0.0")
        self.port = self.config.get_int("port", 8000)
        if not self.engine.is_connected():
            self.engine.connect()
        settings = QueryEngineSettings.from_secrets(self.secrets)
        self.repository = ProductRepository(self.engine, settings, self.log)
        self.lifecycle.on_shutdown(self.repository.close)
        self.lifecycle.on_shutdown(self._stop_server)
        self.log.info("Product API initialized", port=self.port)

    async def execute(self) -> int:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        self.log.info("Product API listening", host=self.host, port=self.port)
        await self.lifecycle.wait_for_shutdown()
        return 0

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/products", self._get_products)
        return app

    async def _get_products(self, request: web.Request) -> web.Response:
        category = request.rel_url.query.get("category")
        try:
            if category is None:
                products = await asyncio.to_thread(self.repository.find_all)
            else:
                products = await asyncio.to_thread(self.repository.find_by_category, category)
        except ProductQueryError as exc:
            self.log.error("Products request failed", category=category, error=str(exc))
            return web.json_response(
                {"error": "query_engine_error", "detail": str(exc)}, status=502
            )
        self.log.debug("Products served", category=category, count=len(products))
        return web.json_response([p.to_dict() for p in products], dumps=_dumps)

    async def _stop_server(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


module_class = ProductApiModule
