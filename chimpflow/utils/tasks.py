"""Background task handles.

Side effects that run in the background (debounced saves) are owned by an
explicit handle so callers can join them and see their failures.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger


class Debouncer:
    """Run an async callback once after a quiet period.

    Every ``schedule()`` call restarts the countdown, so a burst of calls
    results in a single callback run ``delay`` seconds after the last one.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "debounced-task",
    ):
        self.delay = delay
        self.callback = callback
        self.name = name
        self.last_error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a scheduled run has not finished yet."""
        return self._task is not None and not self._task.done()

    def schedule(self) -> bool:
        """(Re)start the countdown.

        Returns:
            False when no event loop is running; nothing is scheduled then.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"{self.name}: no running event loop, run deferred")
            return False

        self.cancel()
        self._task = loop.create_task(self._run_later(), name=self.name)
        self._task.add_done_callback(self._on_done)
        return True

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Cancel the countdown and run the callback now."""
        self.cancel()
        await self.callback()

    async def join(self) -> None:
        """Wait for the pending run; re-raises its failure."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        await self.callback()

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.last_error = error
            logger.error(f"{self.name} failed: {error}")
