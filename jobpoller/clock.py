"""Time source for the scheduler, replaceable in tests."""

from datetime import datetime, timedelta
import threading

from dateutil.tz import tzutc


class Clock(object):
    def now(self) -> datetime:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError

    def wake(self) -> None:
        """Interrupt a sleep in progress, if the clock supports it."""


class SystemClock(Clock):
    def __init__(self):
        self._wakeup = threading.Event()

    def now(self) -> datetime:
        return datetime.now(tzutc())

    def sleep(self, seconds: float) -> None:
        self._wakeup.wait(max(0.0, seconds))
        self._wakeup.clear()

    def wake(self) -> None:
        self._wakeup.set()


class FakeClock(Clock):
    """A clock that only moves when slept on."""

    def __init__(self, start: datetime):
        self._now = start
        self.sleeps = []

    def now(self) -> datetime:
        return self._now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += timedelta(seconds=seconds)

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)
