"""Clocks, including a cheap cached clock advanced by a background thread."""

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Timer(ABC):
    """A source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time."""

    @abstractmethod
    def stop(self) -> None:
        """Release any resources held by the clock."""


class CachedTimer(Timer):
    """A clock whose value advances by a fixed step on every tick.

    Reading it is just an attribute load; precision is limited to the step.
    """

    def __init__(self, step: timedelta) -> None:
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        self._step = step
        self._now = datetime.now(timezone.utc)
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="cached-timer", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        interval = self._step.total_seconds()
        current = self._now
        deadline = time.monotonic()
        while True:
            deadline += interval
            if self._done.wait(max(0.0, deadline - time.monotonic())):
                return
            current += self._step
            self._now = current

    def now(self) -> datetime:
        """Return the cached time."""
        return self._now

    def stop(self) -> None:
        """Stop advancing and wait for the background thread to end."""
        self._done.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "CachedTimer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()