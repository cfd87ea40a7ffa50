# tm_core/common/clock.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Protocol, runtime_checkable

from django.utils import timezone


@runtime_checkable
class ClockSource(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock (aware, UTC when USE_TZ=True)."""

    def now(self) -> datetime:
        return timezone.now()


class FixedClock:
    """
    Deterministic clock for tests and replays.
    advance() moves time forward without touching callers' snapshots.
    """

    def __init__(self, at: datetime):
        if timezone.is_naive(at):
            at = timezone.make_aware(at, dt_timezone.utc)
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at
