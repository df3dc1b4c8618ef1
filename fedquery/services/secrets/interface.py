from abc import ABC, abstractmethod


class SecretsInterface(ABC):
    """Provides access to secrets and configuration values."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Get a secret value by key. Returns None if not found."""
        ...

    @abstractmethod
    def get_or_default(self, key: str, default: str) -> str:
        """Get a secret value, returning default if not found."""
        ...

    @abstractmethod
    def require(self, key: str) -> str:
        """Get a secret value, raising KeyError if not found."""
        ...

    def get_int(self, key: str, default: int) -> int:
        raw = self.get(key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise ValueError(f"Secret '{key}' must be an integer, got {raw!r}") from exc

    def get_float(self, key: str, default: float) -> float:
        raw = self.get(key)
        if raw is None or raw == "":
            return default
        try:
            return float(raw)
        except ValueError as exc:
            raise ValueError(f"Secret '{key}' must be a number, got {raw!r}") from exc
