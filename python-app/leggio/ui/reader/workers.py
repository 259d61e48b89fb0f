"""
Background Workers for the Reader Module.
"""

import asyncio
import concurrent.futures
import logging
from typing import Any, Callable, Coroutine

from PySide6.QtCore import QThread

logger = logging.getLogger(__name__)


class EngineThread(QThread):
    """
    Hosts the asyncio event loop that runs a reader session.

    Every session call is marshalled onto this loop, so session state is only
    ever touched from one thread. Results travel back to the GUI through Qt
    signals.
    """

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self.loop)
            for task in pending:
                task.cancel()
            if pending:
                self.loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            self.loop.run_until_complete(self.loop.shutdown_default_executor())
            self.loop.close()

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        """Runs a plain callable on the engine loop."""
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(fn, *args)

    def submit(self, coro: Coroutine) -> concurrent.futures.Future:
        """Schedules a coroutine on the engine loop."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(self._report)
        return future

    @staticmethod
    def _report(future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Engine task failed: %s", exc, exc_info=exc)

    def stop(self, timeout_ms: int = 3000) -> None:
        """Stops the loop and waits for the thread to finish."""
        if self.isRunning():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self.wait(timeout_ms)
