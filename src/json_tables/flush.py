"""Debounced flush scheduling for the table store."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable

import structlog

logger = structlog.get_logger()


class FlushState(Enum):
    """States of the flush scheduler."""

    IDLE = "idle"
    PENDING = "pending"


class FlushScheduler:
    """Coalesces save requests into at most one flush per debounce window.

    In IDLE, ``schedule()`` arms a timer on the running asyncio loop and
    moves to PENDING with a fixed deadline. Further calls while PENDING
    leave the deadline unchanged. When the timer fires the scheduler
    returns to IDLE and invokes the flush callback, which serializes the
    state as it is at that moment.

    Outside an event loop there is nothing to fire a timer, so
    ``schedule()`` flushes synchronously. A pending timer whose loop is no
    longer the running one is discarded and the request starts over.
    """

    def __init__(self, flush: Callable[[], None], delay: float = 0.2) -> None:
        """Initialize the scheduler.

        Args:
            flush: Callback that writes the current state to disk.
            delay: Debounce window in seconds.
        """
        self._flush = flush
        self.delay = delay
        self.state = FlushState.IDLE
        self.deadline: float | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def pending(self) -> bool:
        """Return whether a flush is scheduled but has not yet run."""
        return self.state is FlushState.PENDING

    def schedule(self) -> None:
        """Request a flush, coalescing with any already pending one."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if self.state is FlushState.PENDING:
            if loop is not None and loop is self._loop:
                return
            # The timer belongs to a loop that has ended and will never fire
            logger.debug("flush_timer_stale")
            self.cancel()

        if loop is None:
            self._fire()
            return

        self.state = FlushState.PENDING
        self.deadline = time.monotonic() + self.delay
        self._loop = loop
        self._handle = loop.call_later(self.delay, self._fire)
        logger.debug("flush_scheduled", delay=self.delay)

    def flush(self) -> None:
        """Cancel any pending timer and flush immediately."""
        self.cancel()
        self._fire()

    def cancel(self) -> None:
        """Drop a pending flush without writing."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._loop = None
        self.state = FlushState.IDLE
        self.deadline = None

    def _fire(self) -> None:
        self._handle = None
        self._loop = None
        self.state = FlushState.IDLE
        self.deadline = None
        self._flush()
