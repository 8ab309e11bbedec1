"""
Two-stage execution.

This module separates "run now" from "run later" callbacks.

Key features:
- now(): execute immediately, capture errors instead of raising
- later(): queue for deferred execution in FIFO order
- One callback per scheduler step, yielding control in between
- Errors from both stages are reported once, after the queue is drained
"""

import asyncio
import logging
import traceback
from collections import deque
from collections.abc import Callable
from typing import Any

from gitpack.core.notify import Notifier

logger = logging.getLogger(__name__)


class TwoStageScheduler:
    """
    Cooperative task queue for two-stage execution.

    When an event loop is running, the deferred flush is scheduled on it as a
    task. Otherwise pending callbacks are drained by `run()`.

    Example:
        scheduler = TwoStageScheduler()
        scheduler.now(lambda: manager.add("user/repo"))
        scheduler.later(lambda: manager.add("user/other"))
        scheduler.run()
    """

    def __init__(self, notifier: Notifier | None = None, step_delay: float = 0.0):
        """
        Initialize TwoStageScheduler.

        Args:
            notifier: Channel for the aggregated error report
            step_delay: Delay in seconds before each deferred callback
        """
        self.notifier = notifier or Notifier()
        self.step_delay = step_delay
        self._queue: deque[Callable[[], Any]] = deque()
        self._errors: list[str] = []
        self._finish_scheduled = False
        self._task: asyncio.Task | None = None

    def now(self, f: Callable[[], Any]) -> None:
        """Execute `f` immediately. Errors are collected for later report."""
        self._call(f)
        self._schedule_finish()

    def later(self, f: Callable[[], Any]) -> None:
        """Queue `f` to be executed after all currently queued callbacks."""
        self._queue.append(f)
        self._schedule_finish()

    @property
    def pending(self) -> int:
        """Number of queued deferred callbacks."""
        return len(self._queue)

    async def drain(self) -> None:
        """Wait until all deferred callbacks are executed and errors reported."""
        task, self._task = self._task, None
        if task is not None:
            await task
        if self._finish_scheduled:
            await self._finish()

    def run(self) -> None:
        """Drain deferred callbacks from synchronous code."""
        if not self._finish_scheduled and self._task is None:
            return
        asyncio.run(self.drain())

    def _call(self, f: Callable[[], Any]) -> None:
        try:
            f()
        except Exception as e:
            logger.debug("Two-stage callback failed", exc_info=True)
            self._errors.append("".join(traceback.format_exception_only(e)).rstrip("\n"))

    def _schedule_finish(self) -> None:
        if self._finish_scheduled:
            return
        self._finish_scheduled = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._finish())

    async def _finish(self) -> None:
        while self._queue:
            # Yield to let the host loop process other events
            await asyncio.sleep(self.step_delay)
            callback = self._queue.popleft()
            self._call(callback)

        self._finish_scheduled = False
        self._report_errors()

    def _report_errors(self) -> None:
        if not self._errors:
            return
        msg = "There were errors during two-stage execution:\n\n" + "\n\n".join(self._errors)
        self._errors = []
        self.notifier.error(msg)
