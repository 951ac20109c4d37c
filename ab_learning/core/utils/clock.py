"""
Clocks for scheduled background work
SystemClock follows wall time; ManualClock only moves when advanced
"""

import threading
import time


class Clock:
    """Time source used by the maintenance scheduler"""

    def now(self) -> float:
        raise NotImplementedError

    def wait(self, stop_event: threading.Event, timeout: float) -> bool:
        """
        Block until `timeout` seconds of clock time pass or stop_event is set

        Returns:
            True if stopped, False if the timeout elapsed
        """
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> float:
        return time.monotonic()

    def wait(self, stop_event: threading.Event, timeout: float) -> bool:
        return stop_event.wait(max(0.0, timeout))


class ManualClock(Clock):
    """Deterministic clock for tests: waiters wake when advance() crosses their deadline"""

    def __init__(self, start: float = 0.0, poll_interval: float = 0.01):
        self._now = start
        self._cond = threading.Condition()
        self.poll_interval = poll_interval

    def now(self) -> float:
        with self._cond:
            return self._now

    def advance(self, seconds: float):
        with self._cond:
            self._now += seconds
            self._cond.notify_all()

    def wait(self, stop_event: threading.Event, timeout: float) -> bool:
        with self._cond:
            deadline = self._now + timeout
            while self._now < deadline and not stop_event.is_set():
                # Bounded wait so stop() is noticed without an advance()
                self._cond.wait(self.poll_interval)
        return stop_event.is_set()
