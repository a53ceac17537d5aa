"""Event-loop scheduler built on ``loop.call_later``.

Callbacks that return a coroutine are run as tasks; the scheduler keeps a
reference to each task until it finishes (so it is not garbage collected
mid-flight) and logs any exception it ends with.  :meth:`aclose` cancels
every outstanding timer and task at shutdown.
"""

from __future__ import annotations

import asyncio
import inspect

import structlog

from knowledge_vault.interfaces.scheduler import IScheduledCall, IScheduler, ScheduledCallback
from knowledge_vault.utils.logging import get_logger


class _TimerCall(IScheduledCall):
    """Wraps an ``asyncio.TimerHandle`` and unregisters itself when done."""

    def __init__(self, scheduler: AsyncioScheduler) -> None:
        self._scheduler = scheduler
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        self._scheduler._timers.discard(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(IScheduler):
    """Schedules callbacks on the running event loop."""

    def __init__(self) -> None:
        self._timers: set[_TimerCall] = set()
        self._tasks: set[asyncio.Task] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def after(self, delay: float, callback: ScheduledCallback) -> IScheduledCall:
        loop = asyncio.get_running_loop()
        call = _TimerCall(self)
        call._handle = loop.call_later(max(0.0, delay), self._fire, call, callback)
        self._timers.add(call)
        return call

    async def aclose(self) -> None:
        for call in list(self._timers):
            call.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._logger.debug("scheduler_closed", cancelled_tasks=len(tasks))

    @property
    def pending_count(self) -> int:
        """Timers not yet fired plus tasks still running."""
        return len(self._timers) + len(self._tasks)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _fire(self, call: _TimerCall, callback: ScheduledCallback) -> None:
        self._timers.discard(call)
        if call.cancelled:
            return
        try:
            result = callback()
        except Exception as exc:
            self._logger.error(
                "scheduled_callback_failed",
                callback=getattr(callback, "__name__", repr(callback)),
                error=str(exc),
            )
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "scheduled_task_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
