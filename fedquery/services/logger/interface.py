from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class LoggingInterface(ABC):
    """Structured logging: a message plus keyword context."""

    @abstractmethod
    def info(self, msg: str, **ctx: Any) -> None: ...

    @abstractmethod
    def warn(self, msg: str, **ctx: Any) -> None: ...

    @abstractmethod
    def error(self, msg: str, **ctx: Any) -> None: ...

    @abstractmethod
    def debug(self, msg: str, **ctx: Any) -> None: ...

    def bind(self, **ctx: Any) -> LoggingInterface:
        """Return a logger that adds *ctx* to every entry."""
        return BoundLogger(self, ctx)


class BoundLogger(LoggingInterface):
    def __init__(self, parent: LoggingInterface, ctx: dict[str, Any]) -> None:
        self._parent = parent
        self._ctx = ctx

    def info(self, msg: str, **ctx: Any) -> None:
        self._parent.info(msg, **{**self._ctx, **ctx})

    def warn(self, msg: str, **ctx: Any) -> None:
        self._parent.warn(msg, **{**self._ctx, **ctx})

    def error(self, msg: str, **ctx: Any) -> None:
        self._parent.error(msg, **{**self._ctx, **ctx})

    def debug(self, msg: str, **ctx: Any) -> None:
        self._parent.debug(msg, **{**self._ctx, **ctx})

    def bind(self, **ctx: Any) -> LoggingInterface:
        return BoundLogger(self._parent, {**self._ctx, **ctx})
