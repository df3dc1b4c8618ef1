from abc import ABC, abstractmethod


class AsyncModule(ABC):
    """A runnable unit resolved from the DI container by the CLI runner.

    Subclasses implement ``execute`` and may hook ``initialize`` (acquire
    clients, read settings), ``validate`` (fail fast on bad config) and
    ``teardown`` (runs even when an earlier step raised).
    """

    async def initialize(self) -> None:
        pass

    async def validate(self) -> None:
        pass

    @abstractmethod
    async def execute(self) -> int:
        """Returns the process exit code."""

    async def teardown(self) -> None:
        pass

    async def run(self) -> int:
        try:
            await self.initialize()
            await self.validate()
            return await self.execute()
        finally:
            await self.teardown()
