# clock.py
from __future__ import annotations

import threading
import time

from .errors import TransferCancelled


class Clock:
    """Monotonic time source plus the wait used between polls.

    Waiting on an event instead of ``time.sleep`` lets another thread call
    ``cancel()`` and unwind a running transfer at its next poll.
    """

    def __init__(self):
        self._cancelled = threading.Event()

    def now(self) -> float:
        return time.monotonic()

    def wait(self, seconds: float) -> None:
        if self._cancelled.wait(seconds):
            raise TransferCancelled("transfer cancelled")

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class Deadline:
    def __init__(self, clock: Clock, seconds: float):
        self.clock = clock
        self.at = clock.now() + seconds

    def expired(self) -> bool:
        return self.clock.now() >= self.at
