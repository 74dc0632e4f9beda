"""Cancellable delayed work on the running event loop."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger

from ..config import Config

Callback = Callable[[], Union[Awaitable[Any], Any]]


class ScheduledTask:
    """
    A callback scheduled to run once after a delay.

    The task can be cancelled while pending, or fired early with
    fire_now(). Exceptions raised by the callback are logged and never
    propagate to whoever waits on the task.
    """

    def __init__(self, delay: float, callback: Callback, name: str = "scheduled-task"):
        loop = asyncio.get_running_loop()
        self.name = name
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._done: asyncio.Future = loop.create_future()
        self._handle = loop.call_later(max(delay, 0), self._fire)

    @property
    def pending(self) -> bool:
        """True until the task has either fired or been cancelled."""
        return self._task is None and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running_task(self) -> Optional[asyncio.Task]:
        """Task running the callback once fired and until it completes, else None."""
        if self._task is None or self._task.done():
            return None
        return self._task

    def cancel(self) -> bool:
        """
        Cancel the task if it has not fired yet.

        Returns:
            True if the task was pending and is now cancelled
        """
        if not self.pending:
            return False

        self._handle.cancel()
        self._cancelled = True
        if not self._done.done():
            self._done.set_result(None)
        return True

    def fire_now(self) -> Optional[asyncio.Task]:
        """
        Run the callback immediately instead of waiting for the delay.

        Returns:
            The task running the callback, or None if the task was cancelled
        """
        if self._cancelled:
            return None
        if self._task is None:
            self._handle.cancel()
            self._fire()
        return self._task

    async def wait(self) -> None:
        """Wait until the callback has completed or the task was cancelled."""
        await asyncio.shield(self._done)

    def _fire(self) -> None:
        if self._task is not None or self._cancelled:
            return
        self._task = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Scheduled task '{self.name}' failed: {e}")
        finally:
            if not self._done.done():
                self._done.set_result(None)


class TimeoutFactory:
    """
    Issues confirmation timeouts backed by ScheduledTask.

    A factory with a non-positive timeout issues nothing, which disables
    timeouts entirely.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls) -> Optional["TimeoutFactory"]:
        """Build a factory from Config, or None when timeouts are disabled."""
        if Config.CONFIRMATION_TIMEOUT_SECONDS <= 0:
            return None
        return cls(Config.CONFIRMATION_TIMEOUT_SECONDS)

    def register(self, on_timeout: Callback) -> Optional[ScheduledTask]:
        """
        Schedule on_timeout to run once the timeout elapses.

        Args:
            on_timeout: Callback to run on expiry (sync or async)

        Returns:
            Handle whose cancel() disarms the timeout, or None if disabled
        """
        if self.timeout_seconds <= 0:
            return None
        logger.debug(f"Arming confirmation timeout ({self.timeout_seconds}s)")
        return ScheduledTask(self.timeout_seconds, on_timeout, name="confirmation-timeout")
