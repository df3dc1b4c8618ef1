from __future__ import annotations

import inspect
import types
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

T = TypeVar("T")


def _unwrap_optional(hint: Any) -> Any:
    """``X | None`` -> ``X``; anything else unchanged."""
    if get_origin(hint) in (Union, types.UnionType):
        members = [a for a in get_args(hint) if a is not type(None)]
        if len(members) == 1:
            return members[0]
    return hint


class Container:
    """Constructor-injection container.

    Holds pre-built objects keyed by type and builds classes by matching
    their ``__init__`` type hints. Optional parameters with a default are
    left to the default when nothing is registered for them.
    """

    def __init__(self) -> None:
        self._registry: dict[type, Any] = {}

    def register_instance(self, type_key: type, instance: Any) -> None:
        self._registry[type_key] = instance

    def has(self, type_key: type) -> bool:
        return type_key in self._registry

    def get(self, type_key: type[T]) -> T:
        try:
            return self._registry[type_key]
        except KeyError:
            raise TypeError(f"No registration found for type {type_key.__name__!r}") from None

    def resolve(self, cls: type[T]) -> T:
        """Instantiate *cls*, injecting registered dependencies."""
        try:
            hints = get_type_hints(cls.__init__)
        except Exception as exc:
            raise TypeError(f"Cannot read type hints for {cls.__name__}.__init__: {exc}") from exc
        hints.pop("return", None)

        kwargs: dict[str, Any] = {}
        for name, param in inspect.signature(cls.__init__).parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            hint = hints.get(name)
            if hint is None:
                raise TypeError(f"Parameter '{name}' of {cls.__name__}.__init__ has no type hint")
            key = _unwrap_optional(hint)
            if key in self._registry:
                kwargs[name] = self._registry[key]
            elif param.default is inspect.Parameter.empty:
                type_name = getattr(key, "__name__", repr(key))
                raise TypeError(
                    f"No registration found for type {type_name!r} "
                    f"(parameter '{name}' of {cls.__name__}.__init__)"
                )
        return cls(**kwargs)
