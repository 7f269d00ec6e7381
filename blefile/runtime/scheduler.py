from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def sleep_ms(self, ms: int) -> None:
        ...


class RealClock:
    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def sleep_ms(self, ms: int) -> None:
        time.sleep(ms / 1000.0)


class FakeClock:
    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def sleep_ms(self, ms: int) -> None:
        self._now += max(0, int(ms))

    def advance_ms(self, ms: int) -> None:
        self.sleep_ms(ms)


class SessionWatchdog:
    """
    Wall-clock guard for an in-progress transfer.

    `expired(started_ms)` is True once `timeout_ms` has elapsed since the session
    started. A timeout of None disables the watchdog.
    """

    def __init__(self, clock: Clock, timeout_ms: int | None) -> None:
        if timeout_ms is not None and timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0 (or None)")
        self._clock = clock
        self._timeout_ms = timeout_ms

    @property
    def timeout_ms(self) -> int | None:
        return self._timeout_ms

    def expired(self, started_ms: int | None) -> bool:
        if self._timeout_ms is None or started_ms is None:
            return False
        return self._clock.now_ms() - started_ms >= self._timeout_ms
