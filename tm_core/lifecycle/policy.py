# tm_core/lifecycle/policy.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

DEFAULT_ALLOWED_DURATIONS = (15, 30, 45, 60, 90, 120)


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    Business constants used by the state machines.

    These are deployment defaults, overridable through settings.LIFECYCLE:
        LIFECYCLE = {
            "MIN_CONSULTATION_FEE": 100,
            "MAX_CONSULTATION_FEE": 500,
            "JOIN_OPENS_MINUTES_BEFORE": 15,
            "JOIN_CLOSES_MINUTES_AFTER": 30,
            "NO_SHOW_GRACE_MINUTES": 30,
            "MIN_REASON_LENGTH": 10,
            "ALLOWED_DURATIONS": [15, 30, 45, 60, 90, 120],
        }
    """

    min_consultation_fee: Decimal = Decimal("100")
    max_consultation_fee: Decimal = Decimal("500")
    join_opens_minutes_before: int = 15
    join_closes_minutes_after: int = 30
    no_show_grace_minutes: int = 30
    min_reason_length: int = 10
    allowed_durations: tuple[int, ...] = field(default=DEFAULT_ALLOWED_DURATIONS)

    @property
    def join_opens_before(self) -> timedelta:
        return timedelta(minutes=self.join_opens_minutes_before)

    @property
    def join_closes_after(self) -> timedelta:
        return timedelta(minutes=self.join_closes_minutes_after)

    @property
    def no_show_grace(self) -> timedelta:
        return timedelta(minutes=self.no_show_grace_minutes)

    @classmethod
    def from_settings(cls) -> "LifecyclePolicy":
        from django.conf import settings

        config = getattr(settings, "LIFECYCLE", None) or {}
        defaults = cls()
        return cls(
            min_consultation_fee=Decimal(str(config.get("MIN_CONSULTATION_FEE", defaults.min_consultation_fee))),
            max_consultation_fee=Decimal(str(config.get("MAX_CONSULTATION_FEE", defaults.max_consultation_fee))),
            join_opens_minutes_before=int(
                config.get("JOIN_OPENS_MINUTES_BEFORE", defaults.join_opens_minutes_before)
            ),
            join_closes_minutes_after=int(
                config.get("JOIN_CLOSES_MINUTES_AFTER", defaults.join_closes_minutes_after)
            ),
            no_show_grace_minutes=int(config.get("NO_SHOW_GRACE_MINUTES", defaults.no_show_grace_minutes)),
            min_reason_length=int(config.get("MIN_REASON_LENGTH", defaults.min_reason_length)),
            allowed_durations=tuple(int(d) for d in config.get("ALLOWED_DURATIONS", defaults.allowed_durations)),
        )


DEFAULT_POLICY = LifecyclePolicy()
