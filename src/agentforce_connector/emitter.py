"""Ordered emission of BotMessages to the framework callback.

When one turn response holds several messages, the first is delivered
inline and the rest are scheduled at increasing delays (k * interval), so
the callback may fire after ``user_says`` has returned. Delivery order is
guaranteed by strictly increasing delays, not by the transport.

Scheduling goes through a small Scheduler protocol so tests can drive a
virtual clock instead of sleeping.
"""

import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from agentforce_connector.models import BotMessage

logger = logging.getLogger(__name__)

DEFAULT_EMIT_INTERVAL_S = 0.1

BotSaysCallback = Callable[[BotMessage], None]


class Scheduler(Protocol):
    """Runs a callback after a delay, fire-and-forget."""

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop's ``call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(delay_s, callback)


class ManualScheduler:
    """Virtual-clock scheduler for deterministic tests.

    Nothing runs until ``advance`` or ``run_all`` is called. Callbacks due at
    the same time run in scheduling order.
    """

    def __init__(self):
        self.now: float = 0.0
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    @property
    def pending(self) -> int:
        """Number of callbacks not yet run."""
        return len(self._queue)

    def due_times(self) -> List[float]:
        """Absolute due times of pending callbacks, in run order."""
        return [due for due, _, _ in sorted(self._queue)]

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now + delay_s, next(self._counter), callback))

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that becomes due."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self.now = due
            callback()
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run every pending callback in due order."""
        if not self._queue:
            return 0
        return self.advance(max(due for due, _, _ in self._queue) - self.now)


class BotMessageEmitter:
    """Delivers normalized messages to the framework callback in order."""

    def __init__(
        self,
        callback: BotSaysCallback,
        scheduler: Scheduler,
        interval_s: float = DEFAULT_EMIT_INTERVAL_S,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive to preserve ordering")
        self._callback = callback
        self._scheduler = scheduler
        self.interval_s = interval_s

    def _deliver(self, message: BotMessage) -> None:
        try:
            self._callback(message)
        except Exception:
            # Deferred deliveries have no caller left to raise into
            logger.exception("queue_bot_says callback failed for deferred message")

    def emit(self, messages: Sequence[BotMessage]) -> None:
        """Schedule the followers, then deliver the first message now.

        The k-th follower fires after ``k * interval_s``. Followers are
        scheduled before the inline delivery, so a failing callback for the
        first message does not drop the rest of the turn.
        """
        if not messages:
            return
        for index, message in enumerate(messages[1:], start=1):
            self._scheduler.schedule(
                index * self.interval_s,
                lambda message=message: self._deliver(message),
            )
        if len(messages) > 1:
            logger.debug("Scheduled %d deferred message(s)", len(messages) - 1)
        self._callback(messages[0])
