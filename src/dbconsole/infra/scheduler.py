"""Cancellable periodic task.

Owns exactly one asyncio task. start() on a running task restarts it, so a
caller toggling quickly never ends up with two timers.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run `callback` every `interval` seconds until stopped.

    The first run happens one interval after start(). A failing callback is
    logged and the loop keeps going.

    Usage:
        task = PeriodicTask(viewer.fetch, interval=5.0, name="logs-refresh")
        task.start()
        ...
        await task.stop()
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        interval: float,
        name: str = "periodic",
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        """Start (or restart) the loop. Cancels any outstanding task first."""
        self.cancel()
        self._task = asyncio.create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        """Request cancellation without waiting for it."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def stop(self) -> None:
        """Cancel and wait until the loop has exited."""
        task = self._task
        self.cancel()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Error in %s: %s", self._name, e)
