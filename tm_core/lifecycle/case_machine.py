# tm_core/lifecycle/case_machine.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from tm_core.lifecycle.constants import CaseAction, CaseStatus
from tm_core.lifecycle.policy import DEFAULT_POLICY, LifecyclePolicy
from tm_core.lifecycle.results import TransitionError, TransitionResult
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot


# action -> (allowed source statuses, target status or None for "unchanged")
CASE_TRANSITIONS: dict[CaseAction, tuple[frozenset, Optional[CaseStatus]]] = {
    CaseAction.ACCEPT: (frozenset({CaseStatus.ASSIGNED}), CaseStatus.ACCEPTED),
    CaseAction.REJECT: (frozenset({CaseStatus.ASSIGNED, CaseStatus.ACCEPTED}), CaseStatus.REJECTED),
    CaseAction.SET_FEE: (frozenset({CaseStatus.ACCEPTED}), None),
    CaseAction.SCHEDULE: (frozenset({CaseStatus.ACCEPTED}), CaseStatus.SCHEDULED),
    CaseAction.RESCHEDULE: (frozenset({CaseStatus.SCHEDULED, CaseStatus.PAYMENT_PENDING}), None),
    CaseAction.REQUEST_PAYMENT: (frozenset({CaseStatus.SCHEDULED}), CaseStatus.PAYMENT_PENDING),
    CaseAction.START_CONSULTATION: (
        frozenset({CaseStatus.SCHEDULED, CaseStatus.PAYMENT_PENDING}),
        CaseStatus.IN_PROGRESS,
    ),
    CaseAction.COMPLETE_CONSULTATION: (
        frozenset({CaseStatus.IN_PROGRESS}),
        CaseStatus.CONSULTATION_COMPLETE,
    ),
    CaseAction.CLOSE: (frozenset({CaseStatus.CONSULTATION_COMPLETE}), CaseStatus.CLOSED),
}


class CaseStateMachine:
    """
    Case workflow:
        ASSIGNED -> ACCEPTED -> (fee set) -> SCHEDULED -> [PAYMENT_PENDING]
                 -> IN_PROGRESS -> CONSULTATION_COMPLETE -> CLOSED
    REJECTED is reachable from ASSIGNED/ACCEPTED.

    Pure: no I/O, no clock of its own, never mutates the snapshot.
    """

    def __init__(self, policy: LifecyclePolicy = DEFAULT_POLICY):
        self.policy = policy

    # -------------------------
    # Queries
    # -------------------------
    def transitions(self, case: CaseSnapshot) -> frozenset[CaseAction]:
        """
        Actions legal for the current status.
        Guards that only need the snapshot are applied here (schedule needs a fee,
        close needs a finalized report); input/time guards are left to validate().
        """
        actions = set()
        for action, (sources, _target) in CASE_TRANSITIONS.items():
            if case.status not in sources:
                continue
            if action == CaseAction.SCHEDULE and not case.has_fee:
                continue
            if action == CaseAction.CLOSE and not case.report_finalized:
                continue
            actions.add(action)
        return frozenset(actions)

    def target_status(self, case: CaseSnapshot, action: CaseAction) -> CaseStatus:
        _sources, target = CASE_TRANSITIONS[CaseAction(action)]
        return target or case.status

    # -------------------------
    # Validation
    # -------------------------
    def validate(
        self,
        case: CaseSnapshot,
        action: CaseAction | str,
        *,
        reason: Optional[str] = None,
        fee=None,
        appointment: Optional[AppointmentSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        try:
            action = CaseAction(action)
        except ValueError:
            return TransitionResult.failure(TransitionError.invalid_state(str(action), case.status))

        sources, _target = CASE_TRANSITIONS[action]
        if case.status not in sources:
            return TransitionResult.failure(TransitionError.invalid_state(action, case.status))

        guard = getattr(self, f"_guard_{action.value}", None)
        if guard is not None:
            error = guard(case, reason=reason, fee=fee, appointment=appointment, now=now)
            if error:
                return TransitionResult.failure(TransitionError.guard_failed(error))

        proposed = self._apply(case, action, fee=fee, now=now)
        return TransitionResult.success(proposed.status, proposed)

    def check_reason(self, reason: Optional[str]) -> Optional[str]:
        text = (reason or "").strip()
        if len(text) < self.policy.min_reason_length:
            return f"Reason must be at least {self.policy.min_reason_length} characters."
        return None

    def parse_fee(self, fee) -> Optional[Decimal]:
        if fee is None or isinstance(fee, bool):
            return None
        try:
            value = Decimal(str(fee))
        except (InvalidOperation, ValueError):
            return None
        return value if value.is_finite() else None

    # -------------------------
    # Guards (return an error detail or None)
    # -------------------------
    def _guard_reject(self, case, *, reason, **_):
        return self.check_reason(reason)

    def _guard_set_fee(self, case, *, fee, **_):
        value = self.parse_fee(fee)
        if value is None:
            return "Consultation fee must be a valid number."
        lo, hi = self.policy.min_consultation_fee, self.policy.max_consultation_fee
        if value < lo or value > hi:
            return f"Consultation fee must be between {lo} and {hi}."
        return None

    def _guard_schedule(self, case, **_):
        if not case.has_fee:
            return "Set the consultation fee before scheduling an appointment."
        return None

    def _guard_start_consultation(self, case, *, appointment, now, **_):
        if appointment is None:
            return "No appointment is attached to this case."
        if now is None:
            return "Current time is required to start a consultation."
        if now < appointment.scheduled_time:
            return "The appointment has not reached its scheduled time yet."
        return None

    def _guard_close(self, case, **_):
        if not case.report_finalized:
            return "The consultation report must be finalized before closing the case."
        return None

    # -------------------------
    # Proposed snapshot
    # -------------------------
    def _apply(self, case: CaseSnapshot, action: CaseAction, *, fee=None, now=None) -> CaseSnapshot:
        changes = {"status": self.target_status(case, action)}

        if action == CaseAction.ACCEPT and case.accepted_at is None:
            changes["accepted_at"] = now
        elif action == CaseAction.SET_FEE:
            changes["consultation_fee"] = self.parse_fee(fee)
        elif action == CaseAction.CLOSE and case.closed_at is None:
            changes["closed_at"] = now

        return replace(case, **changes)
