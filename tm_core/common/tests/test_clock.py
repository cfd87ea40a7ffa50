from datetime import datetime, timedelta

from django.utils import timezone

from tm_core.common.clock import ClockSource, FixedClock, SystemClock


def test_system_clock_is_aware():
    now = SystemClock().now()
    assert timezone.is_aware(now)


def test_fixed_clock_makes_naive_datetimes_utc():
    clock = FixedClock(datetime(2026, 3, 2, 10, 0))

    assert timezone.is_aware(clock.now())
    assert clock.now().utcoffset() == timedelta(0)


def test_fixed_clock_advances(clock, now):
    assert clock.now() == now

    clock.advance(minutes=40)

    assert clock.now() == now + timedelta(minutes=40)


def test_clocks_satisfy_clock_source(clock):
    assert isinstance(clock, ClockSource)
    assert isinstance(SystemClock(), ClockSource)
