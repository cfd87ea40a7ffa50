# tm_core/lifecycle/coordinator.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tm_core.lifecycle.appointment_machine import AppointmentStateMachine
from tm_core.lifecycle.case_machine import CaseStateMachine
from tm_core.lifecycle.constants import AppointmentAction, AppointmentStatus, CaseAction
from tm_core.lifecycle.policy import DEFAULT_POLICY, LifecyclePolicy
from tm_core.lifecycle.snapshots import AppointmentSnapshot, CaseSnapshot


@dataclass(frozen=True)
class AvailableActions:
    case_actions: frozenset = field(default_factory=frozenset)
    appointment_actions: frozenset = field(default_factory=frozenset)


class LifecycleCoordinator:
    """
    Answers "what can be done with this case / appointment right now".

    Used by the API layer to enable controls and to pre-check requests before
    they reach the case/appointment services. Stateless: same inputs, same output.
    """

    # Appointment-level reschedule replaces these case-level controls.
    SUPPRESSED_WITH_APPOINTMENT = frozenset({CaseAction.SCHEDULE, CaseAction.RESCHEDULE})

    def __init__(self, policy: LifecyclePolicy = DEFAULT_POLICY):
        self.policy = policy
        self.cases = CaseStateMachine(policy)
        self.appointments = AppointmentStateMachine(policy)

    def compute_available_actions(
        self,
        case: CaseSnapshot,
        appointment: Optional[AppointmentSnapshot],
        now: datetime,
    ) -> AvailableActions:
        case_actions = set(self.cases.transitions(case))

        if appointment is None or not appointment.is_active:
            # Nothing to start; a SCHEDULED/PAYMENT_PENDING case rebooks through reschedule.
            case_actions.discard(CaseAction.START_CONSULTATION)
            return AvailableActions(case_actions=frozenset(case_actions))

        case_actions -= self.SUPPRESSED_WITH_APPOINTMENT

        if CaseAction.START_CONSULTATION in case_actions and now < appointment.scheduled_time:
            case_actions.discard(CaseAction.START_CONSULTATION)

        if (
            CaseAction.COMPLETE_CONSULTATION in case_actions
            and appointment.status != AppointmentStatus.COMPLETED
        ):
            case_actions.discard(CaseAction.COMPLETE_CONSULTATION)

        return AvailableActions(
            case_actions=frozenset(case_actions),
            appointment_actions=self.appointments.eligible_actions(appointment, now),
        )

    def preview(
        self,
        case: CaseSnapshot,
        appointment: Optional[AppointmentSnapshot],
        now: datetime,
    ) -> dict[str, dict[str, str]]:
        """
        Next-status preview per available action:
            {"case": {"accept": "ACCEPTED", ...}, "appointment": {"cancel": "CANCELLED", ...}}
        """
        available = self.compute_available_actions(case, appointment, now)

        case_preview = {
            str(action): str(self.cases.target_status(case, action))
            for action in sorted(available.case_actions)
        }

        appointment_targets = {
            AppointmentAction.JOIN: None,
            AppointmentAction.CONFIRM: AppointmentStatus.CONFIRMED,
            AppointmentAction.RESCHEDULE: AppointmentStatus.RESCHEDULED,
            AppointmentAction.CANCEL: AppointmentStatus.CANCELLED,
            AppointmentAction.COMPLETE: AppointmentStatus.COMPLETED,
            AppointmentAction.MARK_NO_SHOW: AppointmentStatus.NO_SHOW,
        }
        appointment_preview = {}
        for action in sorted(available.appointment_actions):
            target = appointment_targets[action] or appointment.status
            appointment_preview[str(action)] = str(target)

        return {"case": case_preview, "appointment": appointment_preview}

    def is_allowed(
        self,
        case: CaseSnapshot,
        appointment: Optional[AppointmentSnapshot],
        now: datetime,
        action: CaseAction | AppointmentAction | str,
        *,
        level: Optional[str] = None,
    ) -> bool:
        """
        Enum actions carry their own level. Plain names need level="case" or
        level="appointment" since both levels have a "reschedule".
        """
        if level is None:
            if isinstance(action, CaseAction):
                level = "case"
            elif isinstance(action, AppointmentAction):
                level = "appointment"
            else:
                raise ValueError(f"Ambiguous action {action!r}: pass level=\"case\" or level=\"appointment\".")

        choices, attr = {
            "case": (CaseAction, "case_actions"),
            "appointment": (AppointmentAction, "appointment_actions"),
        }[level]
        try:
            action = choices(action)
        except ValueError:
            return False

        available = self.compute_available_actions(case, appointment, now)
        return action in getattr(available, attr)
