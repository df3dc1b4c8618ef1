from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fedquery.services.logger.interface import LoggingInterface


@dataclass
class LogEntry:
    level: str
    msg: str
    ctx: dict[str, Any] = field(default_factory=dict)


class MemoryLogger(LoggingInterface):
    """Keeps every entry in ``entries`` so tests can assert on harness
    progress (phases reached, warnings recorded during teardown)."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def _record(self, level: str, msg: str, ctx: dict[str, Any]) -> None:
        self.entries.append(LogEntry(level, msg, dict(ctx)))

    def debug(self, msg: str, **ctx: Any) -> None:
        self._record("DEBUG", msg, ctx)

    def info(self, msg: str, **ctx: Any) -> None:
        self._record("INFO", msg, ctx)

    def warn(self, msg: str, **ctx: Any) -> None:
        self._record("WARN", msg, ctx)

    def error(self, msg: str, **ctx: Any) -> None:
        self._record("ERROR", msg, ctx)

    @property
    def messages(self) -> list[str]:
        return [e.msg for e in self.entries]

    def at_level(self, level: str) -> list[LogEntry]:
        return [e for e in self.entries if e.level == level.upper()]

    def find(self, msg: str) -> list[LogEntry]:
        """Entries whose message is exactly *msg*."""
        return [e for e in self.entries if e.msg == msg]
