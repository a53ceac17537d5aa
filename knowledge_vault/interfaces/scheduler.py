"""Abstract scheduling interface for delayed, cancellable callbacks.

The delivery worker never sleeps or calls ``loop.call_later`` itself.
Retry backoff, immediate hand-off after enqueue and staggered startup
replay all go through :meth:`IScheduler.after`, so tests drive time with
a fake clock instead of waiting on the wall clock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Union

ScheduledCallback = Callable[[], Union[Awaitable[None], None]]


class IScheduledCall(ABC):
    """Handle for a callback registered with :meth:`IScheduler.after`."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running.  No-op once it has fired."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """``True`` once :meth:`cancel` has been called."""


class IScheduler(ABC):

    @abstractmethod
    def after(self, delay: float, callback: ScheduledCallback) -> IScheduledCall:
        """Run *callback* once, *delay* seconds from now.

        The callback may be a plain function or return an awaitable; an
        awaitable result is driven to completion by the scheduler.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Cancel every pending callback and running task."""
