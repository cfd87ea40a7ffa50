# tm_core/lifecycle/appointment_machine.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from tm_core.lifecycle.case_machine import CASE_TRANSITIONS, CaseStateMachine
from tm_core.lifecycle.constants import (
    AppointmentAction,
    AppointmentStatus,
    CaseAction,
    ConsultationType,
)
from tm_core.lifecycle.policy import DEFAULT_POLICY, LifecyclePolicy
from tm_core.lifecycle.results import TransitionError, TransitionResult
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot

OPEN_STATUSES = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED}
)
JOINABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})
CONFIRMABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.RESCHEDULED})


class AppointmentStateMachine:
    """
    Appointment workflow with time-window gates.

        SCHEDULED/RESCHEDULED -> CONFIRMED
        SCHEDULED/CONFIRMED/RESCHEDULED -> RESCHEDULED (count + 1)
        SCHEDULED/CONFIRMED/RESCHEDULED -> CANCELLED | COMPLETED
        SCHEDULED/CONFIRMED -> NO_SHOW (after grace, nobody joined)

    COMPLETED, CANCELLED and NO_SHOW are terminal. All windows are inclusive.
    """

    def __init__(self, policy: LifecyclePolicy = DEFAULT_POLICY):
        self.policy = policy
        self.cases = CaseStateMachine(policy)

    # -------------------------
    # Eligibility predicates
    # -------------------------
    def can_join(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        if appt.status not in JOINABLE_STATUSES or not appt.meeting_link:
            return False
        opens = appt.scheduled_time - self.policy.join_opens_before
        closes = appt.scheduled_time + self.policy.join_closes_after
        return opens <= now <= closes

    def can_confirm(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        return appt.status in CONFIRMABLE_STATUSES and now < appt.scheduled_time

    def can_reschedule(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        return appt.status in OPEN_STATUSES

    def can_cancel(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        return appt.status in OPEN_STATUSES

    def can_complete(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        return appt.status in OPEN_STATUSES and now >= appt.scheduled_time

    def can_mark_no_show(self, appt: AppointmentSnapshot, now: datetime) -> bool:
        if appt.status not in JOINABLE_STATUSES or appt.joined_at is not None:
            return False
        return now > appt.scheduled_time + self.policy.no_show_grace

    def eligible_actions(self, appt: AppointmentSnapshot, now: datetime) -> frozenset[AppointmentAction]:
        if appt.is_terminal:
            return frozenset()

        checks = {
            AppointmentAction.JOIN: self.can_join,
            AppointmentAction.CONFIRM: self.can_confirm,
            AppointmentAction.RESCHEDULE: self.can_reschedule,
            AppointmentAction.CANCEL: self.can_cancel,
            AppointmentAction.COMPLETE: self.can_complete,
            AppointmentAction.MARK_NO_SHOW: self.can_mark_no_show,
        }
        return frozenset(action for action, check in checks.items() if check(appt, now))

    # -------------------------
    # Creation
    # -------------------------
    def booking_action(self, case: CaseSnapshot) -> CaseAction:
        sources, _target = CASE_TRANSITIONS[CaseAction.RESCHEDULE]
        return CaseAction.RESCHEDULE if case.status in sources else CaseAction.SCHEDULE

    def propose(
        self,
        case: CaseSnapshot,
        *,
        scheduled_time: datetime,
        now: datetime,
        duration: int = 30,
        consultation_type: str = ConsultationType.VIDEO_CONSULTATION,
        meeting_link: Optional[str] = None,
        appointment_id: str = "",
    ) -> TransitionResult:
        """
        Validate a new appointment for a case. The case-level gate is delegated
        to CaseStateMachine: schedule (ACCEPTED + fee set) for a first booking,
        reschedule (SCHEDULED/PAYMENT_PENDING) when the previous appointment was
        cancelled or missed.
        """
        gate = self.cases.validate(case, self.booking_action(case))
        if not gate.ok:
            return gate

        error = self._check_time(scheduled_time, now) or self._check_duration(duration)
        if error:
            return TransitionResult.failure(TransitionError.guard_failed(error))

        try:
            consultation_type = ConsultationType(consultation_type)
        except ValueError:
            return TransitionResult.failure(
                TransitionError.guard_failed(f"Unsupported consultation type: {consultation_type}.")
            )

        appt = AppointmentSnapshot(
            id=appointment_id,
            case_id=case.id,
            status=AppointmentStatus.SCHEDULED,
            scheduled_time=scheduled_time,
            duration=int(duration),
            consultation_type=consultation_type,
            meeting_link=meeting_link,
        )
        return TransitionResult.success(appt.status, appt)

    # -------------------------
    # Transitions
    # -------------------------
    def validate_join(self, appt: AppointmentSnapshot, now: datetime) -> TransitionResult:
        if appt.status not in JOINABLE_STATUSES:
            return self._invalid(AppointmentAction.JOIN, appt)
        if not appt.meeting_link:
            return self._guard("No meeting link is available for this appointment.")
        if not self.can_join(appt, now):
            return self._guard(
                f"Joining opens {self.policy.join_opens_minutes_before} minutes before and closes "
                f"{self.policy.join_closes_minutes_after} minutes after the scheduled time."
            )
        proposed = appt if appt.joined_at else replace(appt, joined_at=now)
        return TransitionResult.success(proposed.status, proposed)

    def validate_confirm(self, appt: AppointmentSnapshot, now: datetime) -> TransitionResult:
        if appt.status not in CONFIRMABLE_STATUSES:
            return self._invalid(AppointmentAction.CONFIRM, appt)
        if not self.can_confirm(appt, now):
            return self._guard("The appointment time has already passed.")
        return self._to(appt, AppointmentStatus.CONFIRMED)

    def validate_reschedule(
        self,
        appt: AppointmentSnapshot,
        *,
        new_time: datetime,
        reason: Optional[str],
        now: datetime,
        duration: Optional[int] = None,
    ) -> TransitionResult:
        if not self.can_reschedule(appt, now):
            return self._invalid(AppointmentAction.RESCHEDULE, appt)

        error = self._check_time(new_time, now) or self.cases.check_reason(reason)
        if not error and duration is not None:
            error = self._check_duration(duration)
        if error:
            return self._guard(error)

        proposed = replace(
            appt,
            status=AppointmentStatus.RESCHEDULED,
            scheduled_time=new_time,
            duration=appt.duration if duration is None else int(duration),
            reschedule_count=appt.reschedule_count + 1,
            joined_at=None,
        )
        return TransitionResult.success(proposed.status, proposed)

    def validate_cancel(self, appt: AppointmentSnapshot, *, reason: Optional[str], now: datetime) -> TransitionResult:
        if not self.can_cancel(appt, now):
            return self._invalid(AppointmentAction.CANCEL, appt)
        error = self.cases.check_reason(reason)
        if error:
            return self._guard(error)
        return self._to(appt, AppointmentStatus.CANCELLED)

    def validate_complete(self, appt: AppointmentSnapshot, now: datetime) -> TransitionResult:
        if appt.status not in OPEN_STATUSES:
            return self._invalid(AppointmentAction.COMPLETE, appt)
        if not self.can_complete(appt, now):
            return self._guard("The appointment cannot be completed before its scheduled time.")
        return self._to(appt, AppointmentStatus.COMPLETED)

    def validate_mark_no_show(self, appt: AppointmentSnapshot, now: datetime) -> TransitionResult:
        if appt.status not in JOINABLE_STATUSES:
            return self._invalid(AppointmentAction.MARK_NO_SHOW, appt)
        if appt.joined_at is not None:
            return self._guard("A participant already joined this appointment.")
        if not self.can_mark_no_show(appt, now):
            return self._guard(
                f"No-show can only be recorded {self.policy.no_show_grace_minutes} minutes after the scheduled time."
            )
        return self._to(appt, AppointmentStatus.NO_SHOW)

    def validate(self, appt: AppointmentSnapshot, action: AppointmentAction | str, *, now: datetime, **inputs):
        """Dispatch by action name; inputs are the keyword arguments of the specific validator."""
        try:
            action = AppointmentAction(action)
        except ValueError:
            return self._invalid(str(action), appt)

        if action == AppointmentAction.RESCHEDULE:
            return self.validate_reschedule(
                appt,
                new_time=inputs.get("new_time"),
                reason=inputs.get("reason"),
                duration=inputs.get("duration"),
                now=now,
            )
        if action == AppointmentAction.CANCEL:
            return self.validate_cancel(appt, reason=inputs.get("reason"), now=now)
        return getattr(self, f"validate_{action.value}")(appt, now)

    # -------------------------
    # Helpers
    # -------------------------
    def _check_time(self, when: Optional[datetime], now: datetime) -> Optional[str]:
        if when is None:
            return "A scheduled time is required."
        if when <= now:
            return "The scheduled time must be in the future."
        return None

    def _check_duration(self, duration) -> Optional[str]:
        try:
            minutes = int(duration)
        except (TypeError, ValueError):
            minutes = None
        if minutes not in self.policy.allowed_durations:
            allowed = ", ".join(str(d) for d in self.policy.allowed_durations)
            return f"Duration must be one of: {allowed} minutes."
        return None

    @staticmethod
    def _to(appt: AppointmentSnapshot, status: AppointmentStatus) -> TransitionResult:
        return TransitionResult.success(status, replace(appt, status=status))

    @staticmethod
    def _invalid(action, appt: AppointmentSnapshot) -> TransitionResult:
        return TransitionResult.failure(TransitionError.invalid_state(action, appt.status))

    @staticmethod
    def _guard(detail: str) -> TransitionResult:
        return TransitionResult.failure(TransitionError.guard_failed(detail))
