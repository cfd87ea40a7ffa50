# tm_core/lifecycle/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from tm_core.lifecycle.constants import (
    AppointmentStatus,
    CASE_LIFECYCLE_STEPS,
    CaseStatus,
    URGENCY_RANK,
    UrgencyLevel,
)
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot


@dataclass(frozen=True)
class CaseSummary:
    total: int
    accepted: int
    scheduled: int
    in_progress: int
    payment_pending: int
    critical: int
    total_fees: Decimal


@dataclass(frozen=True)
class ProgressStep:
    status: str
    label: str
    state: str  # "past" | "current" | "future"


class LifecycleSelector:
    """
    Read-side helpers over snapshot lists (dashboards, case lists, timelines).
    """

    @staticmethod
    def summarize_cases(cases: Iterable[CaseSnapshot]) -> CaseSummary:
        cases = list(cases)

        def count(status):
            return sum(1 for c in cases if c.status == status)

        return CaseSummary(
            total=len(cases),
            accepted=count(CaseStatus.ACCEPTED),
            scheduled=count(CaseStatus.SCHEDULED),
            in_progress=count(CaseStatus.IN_PROGRESS),
            payment_pending=count(CaseStatus.PAYMENT_PENDING),
            critical=sum(1 for c in cases if c.urgency_level == UrgencyLevel.CRITICAL),
            total_fees=sum((c.consultation_fee or Decimal("0") for c in cases), Decimal("0")),
        )

    @staticmethod
    def sort_by_urgency(cases: Iterable[CaseSnapshot], *, descending: bool = True) -> list[CaseSnapshot]:
        # sorted() is stable, so equal urgency keeps the incoming order
        return sorted(cases, key=lambda c: URGENCY_RANK.get(c.urgency_level, 0), reverse=descending)

    @staticmethod
    def split_appointments(
        appointments: Iterable[AppointmentSnapshot],
        now: datetime,
    ) -> tuple[list[AppointmentSnapshot], list[AppointmentSnapshot]]:
        """
        upcoming: scheduled in the future and not cancelled
        past: everything else
        """
        upcoming, past = [], []
        for appt in appointments:
            if appt.scheduled_time > now and appt.status != AppointmentStatus.CANCELLED:
                upcoming.append(appt)
            else:
                past.append(appt)
        upcoming.sort(key=lambda a: a.scheduled_time)
        past.sort(key=lambda a: a.scheduled_time, reverse=True)
        return upcoming, past

    @staticmethod
    def case_progress(status: CaseStatus | str) -> list[ProgressStep]:
        status = CaseStatus(status)

        if status == CaseStatus.REJECTED:
            steps = [
                ProgressStep(s.value, s.label, "past" if s == CaseStatus.ASSIGNED else "future")
                for s in CASE_LIFECYCLE_STEPS
            ]
            steps.append(ProgressStep(status.value, status.label, "current"))
            return steps

        current = CASE_LIFECYCLE_STEPS.index(status)
        steps = []
        for i, s in enumerate(CASE_LIFECYCLE_STEPS):
            if i < current:
                state = "past"
            elif i == current:
                state = "current"
            else:
                state = "future"
            steps.append(ProgressStep(s.value, s.label, state))
        return steps
