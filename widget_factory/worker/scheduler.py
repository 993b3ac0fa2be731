"""Timing primitives shared by the upload, locate and poll steps.

Delays go through an injectable ``Sleep`` callable and time through a
``Clock`` so that widget sessions can be driven deterministically.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from widget_factory.logging.logger import Log

Clock = Callable[[], int]
Sleep = Callable[[float], Awaitable[None]]


def epoch_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


async def sleep_ms(sleep: Sleep, delay_ms: int) -> None:
    await sleep(delay_ms / 1000)


class ScheduledTask:
    """A running coroutine with an explicit cancel handle.

    Owned by a widget handle; cancelling releases any pending delay or
    in-flight query of the wrapped coroutine.
    """

    def __init__(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        self._name = name
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(
            coro, name=name
        )

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the task already finished."""
        if self._task.done():
            return False
        Log.debug(f"Cancelling scheduled task {self._name}")
        return self._task.cancel()

    async def wait(self) -> None:
        """Wait for completion; a cancelled task completes quietly."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
