import pytest

from blefile.runtime.scheduler import FakeClock, RealClock, SessionWatchdog


def test_fake_clock_advances() -> None:
    clock = FakeClock(start_ms=10)
    clock.sleep_ms(5)
    clock.advance_ms(-3)
    assert clock.now_ms() == 15


def test_watchdog_expires_after_timeout() -> None:
    clock = FakeClock()
    dog = SessionWatchdog(clock, timeout_ms=100)
    assert not dog.expired(None)
    assert not dog.expired(0)
    clock.sleep_ms(99)
    assert not dog.expired(0)
    clock.sleep_ms(1)
    assert dog.expired(0)


def test_watchdog_disabled() -> None:
    clock = FakeClock()
    dog = SessionWatchdog(clock, timeout_ms=None)
    clock.sleep_ms(10_000)
    assert dog.timeout_ms is None
    assert not dog.expired(0)


def test_watchdog_rejects_bad_timeout() -> None:
    with pytest.raises(ValueError, match="timeout_ms must be > 0"):
        SessionWatchdog(FakeClock(), timeout_ms=0)


def test_real_clock_smoke() -> None:
    clock = RealClock()
    t0 = clock.now_ms()
    clock.sleep_ms(0)
    assert clock.now_ms() >= t0
