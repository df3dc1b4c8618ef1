from __future__ import annotations

import uuid

from fedquery.harness.network.interface import VirtualNetwork


class MemoryNetwork(VirtualNetwork):
    def __init__(self, name: str | None = None) -> None:
        super().__init__(name or f"memory-{uuid.uuid4().hex[:8]}")
        self.open_calls = 0
        self.close_calls = 0

    @property
    def native(self) -> MemoryNetwork:
        return self

    def _do_open(self) -> None:
        self.open_calls += 1

    def _do_close(self) -> None:
        self.close_calls += 1
