"""Shutdown coordination for long-running modules: signal handling plus
cleanup hooks that run in reverse registration order."""

from __future__ import annotations

import asyncio
import inspect
import signal
from typing import Any, Awaitable, Callable, Union

from fedquery.services.logger.interface import LoggingInterface

ShutdownHook = Union[Callable[[], None], Callable[[], Awaitable[None]]]


class LifecycleManager:
    def __init__(self, log: LoggingInterface | None = None) -> None:
        self._log = log
        self._hooks: list[ShutdownHook] = []
        self._shutting_down = False
        self._shutdown_done = False
        self._stop_event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self.hook_errors: list[BaseException] = []

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def on_shutdown(self, callback: ShutdownHook) -> None:
        """Register a cleanup callback. Hooks run last-registered first."""
        self._hooks.append(callback)

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Handle SIGTERM/SIGINT via *loop* when given, else via ``signal.signal``."""
        if loop is not None:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self.request_shutdown)
        else:
            for sig in (signal.SIGTERM, signal.SIGINT):
                signal.signal(sig, self._handle_signal)

    def request_shutdown(self) -> None:
        self._shutting_down = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_for_shutdown(self) -> None:
        """Block until a signal (or ``request_shutdown``) arrives."""
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        self._loop = asyncio.get_running_loop()
        if self._shutting_down:
            return
        await self._stop_event.wait()

    async def shutdown(self) -> None:
        if self._shutdown_done:
            return
        self._shutting_down = True
        self._shutdown_done = True

        for hook in reversed(self._hooks):
            try:
                result = hook()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                # Remaining hooks still run
                self.hook_errors.append(exc)
                if self._log is not None:
                    self._log.warn(
                        "Shutdown hook failed",
                        hook=getattr(hook, "__qualname__", repr(hook)),
                        error=str(exc),
                    )

    def _handle_signal(self, signum: int, frame: Any) -> None:
        # Wake the loop's selector; Event.set alone would not
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.request_shutdown)
        else:
            self.request_shutdown()
