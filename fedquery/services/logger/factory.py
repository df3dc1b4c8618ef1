from __future__ import annotations

from fedquery.services.logger.interface import LoggingInterface
from fedquery.services.logger.memory_logger import MemoryLogger
from fedquery.services.logger.pretty_logger import PrettyLogger


class LoggerFactory:
    """Hands out one shared sink per implementation name.

    ``create(component=...)`` binds the sink to a component name, so every
    part of the harness writes to the same sink under its own label.
    """

    _registry: dict[str, type[LoggingInterface]] = {
        "pretty": PrettyLogger,
        "memory": MemoryLogger,
    }

    def __init__(self, default_impl: str = "pretty") -> None:
        self._check(default_impl)
        self._default_impl = default_impl
        self._instances: dict[str, LoggingInterface] = {}

    @classmethod
    def _check(cls, name: str) -> type[LoggingInterface]:
        impl = cls._registry.get(name)
        if impl is None:
            raise ValueError(
                f"Unknown logger implementation: '{name}' "
                f"(available: {', '.join(cls._registry)})"
            )
        return impl

    def create(
        self, impl_name: str | None = None, component: str | None = None
    ) -> LoggingInterface:
        name = impl_name or self._default_impl
        sink = self._instances.get(name)
        if sink is None:
            sink = self._instances[name] = self._check(name)()
        return sink.bind(component=component) if component else sink
