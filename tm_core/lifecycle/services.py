# tm_core/lifecycle/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from tm_core.common.clock import ClockSource, SystemClock
from tm_core.lifecycle.constants import AppointmentAction, CaseAction
from tm_core.lifecycle.coordinator import AvailableActions, LifecycleCoordinator
from tm_core.lifecycle.policy import LifecyclePolicy
from tm_core.lifecycle.ports import AppointmentService, CaseService, RecordNotFound
from tm_core.lifecycle.results import TransitionError, TransitionResult
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot

logger = logging.getLogger(__name__)


class TransitionDenied(Exception):
    def __init__(self, error: TransitionError):
        super().__init__(error.detail)
        self.error = error


class LifecycleService:
    """
    Write-side orchestration.

    Every mutating call follows the same order:
    load snapshot(s) -> validate with the lifecycle core -> call the owning service.
    A denied transition never reaches the external service.

    Notes:
    - Concurrent writes (two tabs rescheduling at once) are resolved by the
      external service; this layer only pre-validates.
    """

    def __init__(
        self,
        *,
        cases: CaseService,
        appointments: AppointmentService,
        clock: Optional[ClockSource] = None,
        policy: Optional[LifecyclePolicy] = None,
    ):
        self.cases = cases
        self.appointments = appointments
        self.clock = clock or SystemClock()
        self.coordinator = LifecycleCoordinator(policy or LifecyclePolicy.from_settings())

    def close(self) -> None:
        for port in (self.cases, self.appointments):
            closer = getattr(port, "close", None)
            if callable(closer):
                closer()

    # -------------------------
    # Internal helpers
    # -------------------------
    @property
    def case_machine(self):
        return self.coordinator.cases

    @property
    def appointment_machine(self):
        return self.coordinator.appointments

    def _load_case(self, case_id: str) -> CaseSnapshot:
        try:
            return self.cases.get_case(case_id)
        except RecordNotFound:
            raise TransitionDenied(TransitionError.not_found(f"Case {case_id} not found."))

    def _load_appointment(self, appointment_id: str) -> AppointmentSnapshot:
        try:
            return self.appointments.get_appointment(appointment_id)
        except RecordNotFound:
            raise TransitionDenied(TransitionError.not_found(f"Appointment {appointment_id} not found."))

    @staticmethod
    def _require(result: TransitionResult, *, subject: str, action: str) -> TransitionResult:
        if not result.ok:
            logger.info("Denied %s on %s: %s (%s)", action, subject, result.error.kind, result.error.detail)
            raise TransitionDenied(result.error)
        logger.info("Validated %s on %s -> %s", action, subject, result.status)
        return result

    # -------------------------
    # Reads
    # -------------------------
    def available_actions(
        self,
        case_id: str,
        now: Optional[datetime] = None,
    ) -> tuple[CaseSnapshot, Optional[AppointmentSnapshot], AvailableActions]:
        case = self._load_case(case_id)
        appointment = self.appointments.get_case_appointment(case_id)
        actions = self.coordinator.compute_available_actions(case, appointment, now or self.clock.now())
        return case, appointment, actions

    # -------------------------
    # Case writes
    # -------------------------
    def accept_case(self, case_id: str) -> CaseSnapshot:
        case = self._load_case(case_id)
        self._require(
            self.case_machine.validate(case, CaseAction.ACCEPT, now=self.clock.now()),
            subject=f"case {case_id}",
            action=CaseAction.ACCEPT,
        )
        return self.cases.accept_case(case_id)

    def reject_case(self, case_id: str, reason: str) -> CaseSnapshot:
        case = self._load_case(case_id)
        self._require(
            self.case_machine.validate(case, CaseAction.REJECT, reason=reason),
            subject=f"case {case_id}",
            action=CaseAction.REJECT,
        )
        return self.cases.reject_case(case_id, reason.strip())

    def set_case_fee(self, case_id: str, fee) -> CaseSnapshot:
        case = self._load_case(case_id)
        result = self._require(
            self.case_machine.validate(case, CaseAction.SET_FEE, fee=fee),
            subject=f"case {case_id}",
            action=CaseAction.SET_FEE,
        )
        return self.cases.set_case_fee(case_id, result.snapshot.consultation_fee)

    def close_case(self, case_id: str) -> CaseSnapshot:
        case = self._load_case(case_id)
        self._require(
            self.case_machine.validate(case, CaseAction.CLOSE, now=self.clock.now()),
            subject=f"case {case_id}",
            action=CaseAction.CLOSE,
        )
        return self.cases.close_case(case_id)

    # -------------------------
    # Appointment writes
    # -------------------------
    def schedule_appointment(
        self,
        case_id: str,
        *,
        scheduled_time: datetime,
        duration: int = 30,
        consultation_type: str = "VIDEO_CONSULTATION",
        meeting_link: Optional[str] = None,
        notes: str = "",
    ) -> AppointmentSnapshot:
        """
        First booking for an ACCEPTED case, or a new slot for a SCHEDULED/PAYMENT_PENDING
        case whose appointment was cancelled or missed.
        """
        case = self._load_case(case_id)

        existing = self.appointments.get_case_appointment(case_id)
        if existing is not None and existing.is_active:
            raise TransitionDenied(
                TransitionError.guard_failed("This case already has an active appointment; reschedule it instead.")
            )

        result = self._require(
            self.appointment_machine.propose(
                case,
                scheduled_time=scheduled_time,
                now=self.clock.now(),
                duration=duration,
                consultation_type=consultation_type,
                meeting_link=meeting_link,
            ),
            subject=f"case {case_id}",
            action=self.appointment_machine.booking_action(case),
        )
        proposed = result.snapshot
        return self.appointments.schedule_appointment(
            {
                "caseId": case_id,
                "scheduledTime": proposed.scheduled_time.isoformat(),
                "duration": proposed.duration,
                "consultationType": str(proposed.consultation_type),
                "meetingLink": proposed.meeting_link,
                "consultationFee": str(case.consultation_fee),
                "notes": notes,
            }
        )

    def reschedule_appointment(
        self,
        appointment_id: str,
        *,
        new_time: datetime,
        reason: str,
        duration: Optional[int] = None,
    ) -> AppointmentSnapshot:
        appt = self._load_appointment(appointment_id)
        result = self._require(
            self.appointment_machine.validate_reschedule(
                appt,
                new_time=new_time,
                reason=reason,
                duration=duration,
                now=self.clock.now(),
            ),
            subject=f"appointment {appointment_id}",
            action=AppointmentAction.RESCHEDULE,
        )
        payload = {"newDateTime": result.snapshot.scheduled_time.isoformat(), "reason": reason.strip()}
        if duration is not None:
            payload["duration"] = result.snapshot.duration
        return self.appointments.reschedule_appointment(appointment_id, payload)

    def cancel_appointment(self, appointment_id: str, reason: str) -> AppointmentSnapshot:
        appt = self._load_appointment(appointment_id)
        self._require(
            self.appointment_machine.validate_cancel(appt, reason=reason, now=self.clock.now()),
            subject=f"appointment {appointment_id}",
            action=AppointmentAction.CANCEL,
        )
        return self.appointments.cancel_appointment(appointment_id, reason.strip())
