"""Timeout primitives shared by every state handler.

``run_with_timeout`` races an awaitable against a timer. Unlike a bare
``asyncio.wait_for`` it never waits for the losing operation to unwind: the
operation is cancelled and left to finish in the background, so a provider
call that ignores cancellation cannot stall the session.

``Deadline`` tracks a fixed point in time for loops that poll several
conditions while waiting.

Usage:
    from meetbot.timeouts import Deadline, TimeoutExpired, run_with_timeout

    page = await run_with_timeout(provider.open_meeting_page(...), 60, "open page")

    deadline = Deadline(600)
    while not deadline.expired:
        await asyncio.sleep(min(1.0, deadline.remaining()))
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimeoutExpired(asyncio.TimeoutError):
    """Raised when an operation did not finish before its timeout."""

    def __init__(self, label: str, seconds: float):
        super().__init__(f"{label} timed out after {seconds:g}s")
        self.label = label
        self.seconds = seconds


def _consume_result(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned task so it is never reported as unhandled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned operation finished with error: {exc}")


def abandon(task: asyncio.Future) -> None:
    """Cancel a task without waiting for it to unwind."""
    if not task.done():
        task.cancel()
    task.add_done_callback(_consume_result)


async def run_with_timeout(aw: Awaitable[T], timeout: float, label: str = "operation") -> T:
    """Await ``aw`` for at most ``timeout`` seconds.

    Args:
        aw: Coroutine or future to run
        timeout: Seconds before giving up
        label: Name used in the timeout message and logs

    Returns:
        The result of ``aw``

    Raises:
        TimeoutExpired: if the timer fired first
        Exception: whatever ``aw`` raised, if it finished first
    """
    task = asyncio.ensure_future(aw)
    try:
        done, _ = await asyncio.wait({task}, timeout=max(timeout, 0))
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    abandon(task)
    raise TimeoutExpired(label, timeout)


async def gather_settled(*aws: Awaitable[Any]) -> list[Any]:
    """Wait for every awaitable; failures are returned instead of raised.

    One failing step never cancels the others.
    """
    return await asyncio.gather(*aws, return_exceptions=True)


class Deadline:
    """A fixed point in time measured on a monotonic clock."""

    def __init__(self, seconds: float, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self.seconds = seconds
        self._expires_at = self._clock() + seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    async def run(self, aw: Awaitable[T], label: str = "operation") -> T:
        """Run ``aw`` bounded by the time left on this deadline."""
        return await run_with_timeout(aw, self.remaining(), label)
